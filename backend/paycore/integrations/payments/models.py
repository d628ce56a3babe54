from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from paycore.integrations.common import IntegrationMisconfiguredError, PaymentError, ValidationError


RENDER_LOCALLY = "local:render"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_TIMESTAMP_RE = re.compile(r"^[0-9]{14}$")


def transaction_timestamp(tz_name: str = "UTC", *, now: datetime | None = None) -> str:
    try:
        tz = ZoneInfo((tz_name or "UTC").strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise IntegrationMisconfiguredError(f"unknown timezone: {tz_name}") from exc
    moment = now.astimezone(tz) if now is not None else datetime.now(tz)
    return moment.strftime(TIMESTAMP_FORMAT)


def _coerce_bool(value, default: bool = False) -> bool:
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return int(value) == 1
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(default)


def _optional_str(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number != number.to_integral_value():
        return None
    try:
        return int(number)
    except (OverflowError, ValueError):
        return None


@dataclass(frozen=True)
class PaymentRequest:
    provider: str
    method: str
    merchant_reference: str
    amount: int
    transaction_time: str
    description: str = ""
    return_url: str = ""
    payer_mobile: str = ""

    @classmethod
    def build(
        cls,
        *,
        provider: str,
        method: str,
        merchant_reference: str,
        amount: int,
        description: str = "",
        return_url: str = "",
        payer_mobile: str = "",
        tz_name: str = "UTC",
    ) -> "PaymentRequest":
        return cls(
            provider=provider,
            method=method,
            merchant_reference=merchant_reference,
            amount=amount,
            transaction_time=transaction_timestamp(tz_name),
            description=description,
            return_url=return_url,
            payer_mobile=payer_mobile,
        )

    def validate(self) -> "PaymentRequest":
        if not (self.provider or "").strip():
            raise ValidationError("provider is required")
        if not (self.method or "").strip():
            raise ValidationError("method is required")
        if not (self.merchant_reference or "").strip():
            raise ValidationError("merchant_reference is required")
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationError("amount must be an integer number of minor units")
        if self.amount <= 0:
            raise ValidationError("amount must be > 0")
        stamp = str(self.transaction_time or "")
        if not _TIMESTAMP_RE.match(stamp):
            raise ValidationError("transaction_time must be yyyyMMddHHmmss")
        try:
            datetime.strptime(stamp, TIMESTAMP_FORMAT)
        except ValueError as exc:
            raise ValidationError("transaction_time is not a valid date") from exc
        return self


@dataclass(frozen=True)
class PaymentContext:
    request: PaymentRequest
    signature: str
    auth_token: str | None = None

    @property
    def merchant_reference(self) -> str:
        return self.request.merchant_reference

    @property
    def amount(self) -> int:
        return self.request.amount

    @property
    def transaction_time(self) -> str:
        return self.request.transaction_time


@dataclass(frozen=True)
class TransactionHandle:
    invoice_id: str
    redirect_url: str
    configuration: dict | None = None

    @property
    def renders_locally(self) -> bool:
        return self.redirect_url == RENDER_LOCALLY

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "redirect_url": None if self.renders_locally else self.redirect_url,
            "render_locally": self.renders_locally,
            "configuration": dict(self.configuration) if self.configuration else None,
        }


@dataclass(frozen=True)
class CompletionRecord:
    """Fixed-shape view of a completion or status payload.

    Flags default to False and every other field to None when absent.
    """

    success: bool = False
    paid: bool = False
    card_payment: bool = False
    wallet_payment: bool = False
    network_reference: str | None = None
    paid_through: str | None = None
    amount: int | None = None
    system_reference: str | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)


def parse_completion_payload(payload: Any) -> CompletionRecord:
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError("completion payload is not utf-8") from exc
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise ValidationError("completion payload is not valid json") from exc
    if not isinstance(payload, Mapping):
        raise ValidationError("completion payload must be an object")

    fields = {str(k).strip().lower(): v for k, v in payload.items()}
    return CompletionRecord(
        success=_coerce_bool(fields.get("success")),
        paid=_coerce_bool(fields.get("paid")),
        card_payment=_coerce_bool(fields.get("cardpayment")),
        wallet_payment=_coerce_bool(fields.get("walletpayment")),
        network_reference=_optional_str(fields.get("networkreference")),
        paid_through=_optional_str(fields.get("paidthrough")),
        amount=_optional_int(fields.get("amount")),
        system_reference=_optional_str(fields.get("systemreference")),
        raw=dict(payload),
    )


class ResultStatus:
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PaymentResult:
    status: str
    merchant_reference: str = ""
    invoice_id: str | None = None
    external_reference: str | None = None
    status_label: str | None = None
    message: str = ""
    retryable: bool = False

    @classmethod
    def success(
        cls,
        *,
        invoice_id: str | None,
        external_reference: str | None,
        status_label: str | None = None,
        merchant_reference: str = "",
    ) -> "PaymentResult":
        return cls(
            status=ResultStatus.SUCCESS,
            merchant_reference=merchant_reference,
            invoice_id=invoice_id,
            external_reference=external_reference,
            status_label=status_label,
        )

    @classmethod
    def error(cls, message: str, *, retryable: bool = False, merchant_reference: str = "") -> "PaymentResult":
        return cls(
            status=ResultStatus.ERROR,
            merchant_reference=merchant_reference,
            message=(message or "payment failed"),
            retryable=bool(retryable),
        )

    @classmethod
    def cancelled(cls, *, merchant_reference: str = "") -> "PaymentResult":
        return cls(status=ResultStatus.CANCELLED, merchant_reference=merchant_reference, message="cancelled by user")

    @classmethod
    def from_exception(cls, exc: BaseException, *, merchant_reference: str = "") -> "PaymentResult":
        if isinstance(exc, PaymentError):
            return cls.error(str(exc), retryable=exc.retryable, merchant_reference=merchant_reference)
        return cls.error(f"internal error: {exc}", retryable=False, merchant_reference=merchant_reference)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == ResultStatus.ERROR

    @property
    def is_cancelled(self) -> bool:
        return self.status == ResultStatus.CANCELLED

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "merchant_reference": self.merchant_reference,
            "invoice_id": self.invoice_id,
            "external_reference": self.external_reference,
            "status_label": self.status_label,
            "message": self.message,
            "retryable": bool(self.retryable),
        }
