from __future__ import annotations

from urllib.parse import urlencode

from paycore.integrations.payments.base import PaymentGateway
from paycore.integrations.payments.models import CompletionRecord, PaymentContext, PaymentRequest, TransactionHandle
from paycore.integrations.payments.signature import SignatureEncoding, sign, signatures_match


SANDBOX_KEY = b"sandbox"


class MockGateway(PaymentGateway):
    provider = "mock"
    delivery = "redirect"
    signature_encoding = SignatureEncoding.HEX_UPPER

    @property
    def signing_key(self) -> bytes:
        return SANDBOX_KEY

    def authenticate(self) -> str | None:
        return None

    def signed_fields(self, request: PaymentRequest, auth_token: str | None = None) -> dict:
        return {
            "Amount": request.amount,
            "DateTimeLocalTrxn": request.transaction_time,
            "MerchantReference": request.merchant_reference,
        }

    def create_transaction(self, context: PaymentContext) -> TransactionHandle:
        qs = urlencode({"reference": context.merchant_reference, "method": self.method or "card"})
        return TransactionHandle(
            invoice_id=f"mock_{context.merchant_reference}",
            redirect_url=f"https://example.com/mock/pay?{qs}",
        )

    def check_status(self, context: PaymentContext) -> CompletionRecord:
        return CompletionRecord(
            success=True,
            paid=True,
            card_payment=self.method == "card",
            wallet_payment=self.method == "wallet",
            paid_through=self.method or "card",
            amount=context.amount,
            system_reference=f"mock_sys_{context.merchant_reference}",
        )

    def verify_notification(self, raw_body: bytes, signature: str | None) -> bool:
        expected = sign(SANDBOX_KEY, bytes(raw_body or b""), self.signature_encoding)
        return signatures_match(expected, signature)
