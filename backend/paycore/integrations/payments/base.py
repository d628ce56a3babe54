from __future__ import annotations

from functools import partial
from typing import Any

from paycore.integrations.common import UnsupportedOperationError
from paycore.integrations.payments.catalog import GatewayDescriptor
from paycore.integrations.payments.models import (
    CompletionRecord,
    PaymentContext,
    PaymentRequest,
    TransactionHandle,
    parse_completion_payload,
)
from paycore.integrations.payments.signature import SignatureEncoding, sign
from paycore.integrations.payments.strategy import EmbeddedStrategy, ExecutionStrategy, RedirectStrategy


class PaymentGateway:
    provider = "unknown"
    delivery = "unknown"
    signature_encoding = SignatureEncoding.HEX_UPPER

    def __init__(self, descriptor: GatewayDescriptor | None = None):
        self.descriptor = descriptor

    @property
    def method(self) -> str:
        return self.descriptor.method if self.descriptor is not None else ""

    @property
    def signing_key(self) -> bytes:
        raise NotImplementedError

    def authenticate(self) -> str | None:
        raise NotImplementedError

    def signed_fields(self, request: PaymentRequest, auth_token: str | None = None) -> dict:
        raise NotImplementedError

    def create_transaction(self, context: PaymentContext) -> TransactionHandle:
        raise NotImplementedError

    def generate_signature(self, secret_key: bytes, canonical_message: str) -> str:
        return sign(secret_key, canonical_message, self.signature_encoding)

    def check_status(self, context: PaymentContext) -> CompletionRecord:
        raise UnsupportedOperationError(f"{self.provider} has no status endpoint")

    def verify_notification(self, raw_body: bytes, signature: str | None) -> bool:
        raise UnsupportedOperationError(f"{self.provider} does not send server notifications")

    def parse_completion(self, payload: Any) -> CompletionRecord:
        return parse_completion_payload(payload)

    def get_execution_strategy(self, context: PaymentContext) -> ExecutionStrategy:
        if self.delivery == "redirect":
            return RedirectStrategy(
                context=context,
                create=partial(self.create_transaction, context),
                parse_completion=self.parse_completion,
                status_check=partial(self.check_status, context),
            )
        if self.delivery == "embedded":
            return EmbeddedStrategy(
                context=context,
                create=partial(self.create_transaction, context),
                parse_completion=self.parse_completion,
            )
        raise UnsupportedOperationError(f"{self.provider} has no execution strategy")
