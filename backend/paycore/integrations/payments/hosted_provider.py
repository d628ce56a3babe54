from __future__ import annotations

import requests

from paycore.integrations.common import AuthenticationError, PaymentError, TransportError
from paycore.integrations.payments.base import PaymentGateway
from paycore.integrations.payments.catalog import GatewayDescriptor
from paycore.integrations.payments.models import CompletionRecord, PaymentContext, PaymentRequest, TransactionHandle
from paycore.integrations.payments.signature import SignatureEncoding, sign, signatures_match


class HostedCheckoutGateway(PaymentGateway):
    """Redirect gateway: server-side invoice, hosted payment page, webhook or poll."""

    provider = "hosted"
    delivery = "redirect"
    signature_encoding = SignatureEncoding.BASE64

    def __init__(
        self,
        descriptor: GatewayDescriptor | None = None,
        *,
        base_url: str,
        merchant_id: str,
        terminal_id: str,
        api_key: str,
        secret_key: str,
        timeout: float = 25.0,
        session: requests.Session | None = None,
    ):
        super().__init__(descriptor)
        self.base_url = (base_url or "").rstrip("/")
        self.merchant_id = merchant_id
        self.terminal_id = terminal_id
        self.api_key = api_key
        self.secret_key = secret_key
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    @property
    def signing_key(self) -> bytes:
        return self.secret_key.encode("utf-8")

    def _request(self, path: str, *, json_body: dict, token: str | None = None) -> tuple[int, dict]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            r = self.session.post(f"{self.base_url}{path}", json=json_body, headers=headers, timeout=self.timeout)
        except requests.Timeout as exc:
            raise TransportError(f"HOSTED_TIMEOUT:{path}") from exc
        except requests.RequestException as exc:
            raise TransportError(f"HOSTED_REQUEST_FAILED:{path}:{exc}") from exc
        try:
            j = r.json() if r.content else {}
        except ValueError:
            j = {}
        return int(r.status_code), j if isinstance(j, dict) else {"payload": j}

    def _raise_for_failure(self, status: int, body: dict, prefix: str) -> None:
        msg = str(body.get("Message") or body.get("message") or f"HTTP {status}").strip()
        if status >= 500:
            raise TransportError(f"{prefix}:{msg}")
        raise PaymentError(f"{prefix}:{msg}")

    def authenticate(self) -> str:
        try:
            status, body = self._request("/auth/token", json_body={"ApiKey": self.api_key})
        except TransportError as exc:
            raise AuthenticationError(f"HOSTED_AUTH_FAILED:{exc}") from exc
        token = str(body.get("Token") or body.get("token") or "").strip()
        if status < 200 or status >= 300 or not token:
            msg = str(body.get("Message") or body.get("message") or f"HTTP {status}").strip()
            raise AuthenticationError(f"HOSTED_AUTH_FAILED:{msg}")
        return token

    def signed_fields(self, request: PaymentRequest, auth_token: str | None = None) -> dict:
        return {
            "Amount": request.amount,
            "DateTimeLocalTrxn": request.transaction_time,
            "MerchantId": self.merchant_id,
            "MerchantReference": request.merchant_reference,
            "TerminalId": self.terminal_id,
        }

    def create_transaction(self, context: PaymentContext) -> TransactionHandle:
        request = context.request
        payload = self.signed_fields(request)
        payload.update(
            {
                "SecureHash": context.signature,
                "Description": request.description,
                "ReturnUrl": request.return_url,
                "PayerMobile": request.payer_mobile,
            }
        )
        status, body = self._request("/invoices", json_body=payload, token=context.auth_token)
        if status < 200 or status >= 300 or body.get("Success") is not True:
            self._raise_for_failure(status, body, "HOSTED_INVOICE_FAILED")
        redirect_url = str(body.get("RedirectUrl") or "").strip()
        if not redirect_url:
            raise PaymentError("HOSTED_INVOICE_FAILED:missing RedirectUrl")
        return TransactionHandle(
            invoice_id=str(body.get("InvoiceId") or context.merchant_reference).strip(),
            redirect_url=redirect_url,
        )

    def check_status(self, context: PaymentContext) -> CompletionRecord:
        payload = self.signed_fields(context.request)
        payload["SecureHash"] = context.signature
        status, body = self._request("/invoices/status", json_body=payload, token=context.auth_token)
        if status < 200 or status >= 300:
            self._raise_for_failure(status, body, "HOSTED_STATUS_FAILED")
        return self.parse_completion(body)

    def verify_notification(self, raw_body: bytes, signature: str | None) -> bool:
        expected = sign(self.signing_key, bytes(raw_body or b""), self.signature_encoding)
        return signatures_match(expected, signature)
