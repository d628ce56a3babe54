from __future__ import annotations


class PaymentError(RuntimeError):
    code = "PAYMENT_ERROR"
    retryable = False

    def __init__(self, message: str = "", *, retryable: bool | None = None):
        super().__init__(message or self.code)
        if retryable is not None:
            self.retryable = bool(retryable)


class AuthenticationError(PaymentError):
    code = "AUTHENTICATION_FAILED"
    retryable = True


class UnsupportedCombinationError(PaymentError):
    code = "UNSUPPORTED_COMBINATION"

    def __init__(self, provider: str, method: str):
        self.provider = str(provider or "")
        self.method = str(method or "")
        super().__init__(f"no gateway for provider={self.provider!r} method={self.method!r}")


class UnsupportedOperationError(PaymentError):
    code = "UNSUPPORTED_OPERATION"


class TransportError(PaymentError):
    code = "TRANSPORT_FAILED"
    retryable = True


class ValidationError(PaymentError):
    code = "VALIDATION_FAILED"


class IntegrationDisabledError(PaymentError):
    code = "INTEGRATION_DISABLED"


class IntegrationMisconfiguredError(PaymentError):
    code = "INTEGRATION_MISCONFIGURED"
