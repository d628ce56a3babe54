from __future__ import annotations

from paycore.integrations.common import UnsupportedOperationError
from paycore.integrations.payments.base import PaymentGateway
from paycore.integrations.payments.catalog import GatewayDescriptor
from paycore.integrations.payments.models import RENDER_LOCALLY, PaymentContext, PaymentRequest, TransactionHandle
from paycore.integrations.payments.signature import SignatureEncoding


class LightboxMethod:
    CARD = 0
    WALLET = 1
    BOTH = 2

    BY_NAME = {"card": CARD, "wallet": WALLET, "both": BOTH}


class LightboxGateway(PaymentGateway):
    """Configuration-driven gateway rendered in an embedded checkout surface.

    There is no server-side invoice: the signed bundle returned by
    ``create_transaction`` is everything the surface needs. Card and wallet
    variants only differ by ``method_selector``.
    """

    provider = "lightbox"
    delivery = "embedded"
    signature_encoding = SignatureEncoding.HEX_UPPER

    def __init__(
        self,
        descriptor: GatewayDescriptor | None = None,
        *,
        merchant_id: str,
        terminal_id: str,
        secret_key: bytes,
        method_selector: int,
        script_url: str = "",
    ):
        super().__init__(descriptor)
        if method_selector not in LightboxMethod.BY_NAME.values():
            raise ValueError(f"unknown lightbox method selector: {method_selector}")
        self.merchant_id = merchant_id
        self.terminal_id = terminal_id
        self.secret_key = bytes(secret_key)
        self.method_selector = int(method_selector)
        self.script_url = script_url

    @property
    def signing_key(self) -> bytes:
        return self.secret_key

    def authenticate(self) -> str | None:
        return None

    def signed_fields(self, request: PaymentRequest, auth_token: str | None = None) -> dict:
        return {
            "Amount": request.amount,
            "DateTimeLocalTrxn": request.transaction_time,
            "MerchantId": self.merchant_id,
            "MerchantReference": request.merchant_reference,
            "TerminalId": self.terminal_id,
        }

    def create_transaction(self, context: PaymentContext) -> TransactionHandle:
        if not context.signature:
            raise UnsupportedOperationError("lightbox configuration requires a signed context")
        configuration = {
            "OrderId": context.merchant_reference,
            "MID": self.merchant_id,
            "TID": self.terminal_id,
            "SecureHash": context.signature,
            "TrxDateTime": context.transaction_time,
            "AmountTrxn": context.amount,
            "MerchantReference": context.merchant_reference,
            "paymentMethodFromLightBox": self.method_selector,
        }
        if self.script_url:
            configuration["ScriptUrl"] = self.script_url
        return TransactionHandle(
            invoice_id=context.merchant_reference,
            redirect_url=RENDER_LOCALLY,
            configuration=configuration,
        )
