from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from paycore.integrations.common import (
    AuthenticationError,
    IntegrationDisabledError,
    IntegrationMisconfiguredError,
    PaymentError,
    TransportError,
    UnsupportedCombinationError,
    UnsupportedOperationError,
    ValidationError,
)
from paycore.integrations.payments.models import PaymentRequest, transaction_timestamp
from paycore.utils.observability import get_request_id

payments_bp = Blueprint("payments_bp", __name__, url_prefix="/api/payments")

_ERROR_STATUS = {
    ValidationError: 400,
    UnsupportedCombinationError: 422,
    UnsupportedOperationError: 409,
    AuthenticationError: 502,
    TransportError: 502,
    IntegrationDisabledError: 503,
    IntegrationMisconfiguredError: 500,
}


def _orchestrator():
    return current_app.extensions["paycore.orchestrator"]


def _registry():
    return current_app.extensions["paycore.attempts"]


def _settings():
    return current_app.extensions["paycore.settings"]


def error_response(exc: PaymentError):
    status = 400
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            status = _ERROR_STATUS[cls]
            break
    body = {
        "ok": False,
        "error": exc.code,
        "message": str(exc),
        "retryable": bool(exc.retryable),
        "trace_id": get_request_id(),
    }
    return jsonify(body), status


def _amount_from(raw) -> int:
    if isinstance(raw, bool):
        raise ValidationError("amount must be an integer number of minor units")
    if isinstance(raw, int):
        return raw
    # ascii digits only; isdigit() also accepts superscripts int() cannot parse
    if isinstance(raw, str) and raw.strip().isascii() and raw.strip().isdecimal():
        return int(raw.strip())
    raise ValidationError("amount must be an integer number of minor units")


def _request_from_payload(data: dict) -> PaymentRequest:
    stamp = str(data.get("transaction_time") or "").strip() or transaction_timestamp(_settings().timezone)
    return PaymentRequest(
        provider=str(data.get("provider") or "").strip().lower(),
        method=str(data.get("method") or "").strip().lower(),
        merchant_reference=str(data.get("merchant_reference") or "").strip(),
        amount=_amount_from(data.get("amount")),
        transaction_time=stamp,
        description=str(data.get("description") or ""),
        return_url=str(data.get("return_url") or ""),
        payer_mobile=str(data.get("payer_mobile") or ""),
    )


def _attempt_or_404(ref: str):
    strategy = _registry().get((ref or "").strip())
    if strategy is None:
        return None, (jsonify({"ok": False, "error": "ATTEMPT_NOT_FOUND", "merchant_reference": ref}), 404)
    return strategy, None


def _attempt_body(strategy, **extra) -> dict:
    body = {"ok": strategy.result is None or strategy.result.ok}
    body.update(strategy.snapshot())
    body.update(extra)
    return body


@payments_bp.get("/methods")
def list_methods():
    catalog = _orchestrator().factory.catalog
    return jsonify({"ok": True, "methods": [d.to_dict() for d in catalog.enabled()]}), 200


@payments_bp.post("/confirm")
def confirm_payment():
    data = request.get_json(silent=True) or {}
    try:
        payment_request = _request_from_payload(data).validate()
    except PaymentError as exc:
        return error_response(exc)

    ref = payment_request.merchant_reference
    registry = _registry()
    if not registry.reserve(ref):
        return jsonify({"ok": False, "error": "ATTEMPT_IN_PROGRESS", "merchant_reference": ref}), 409
    try:
        strategy = _orchestrator().begin(payment_request)
    except PaymentError as exc:
        registry.release(ref)
        current_app.logger.warning("payments_confirm_rejected ref=%s code=%s err=%s", ref, exc.code, exc)
        return error_response(exc)
    except Exception:
        registry.release(ref)
        current_app.logger.exception("payments_confirm_failed ref=%s", ref)
        return jsonify({"ok": False, "error": "PAYMENT_INIT_FAILED", "message": "Internal error"}), 500

    registry.attach(ref, strategy)
    return jsonify(_attempt_body(strategy)), 200


@payments_bp.get("/attempts/<ref>")
def attempt_status(ref: str):
    strategy, missing = _attempt_or_404(ref)
    if missing:
        return missing
    return jsonify(_attempt_body(strategy)), 200


@payments_bp.post("/attempts/<ref>/complete")
def attempt_complete(ref: str):
    strategy, missing = _attempt_or_404(ref)
    if missing:
        return missing
    accepted = strategy.complete(request.get_data() or b"")
    return jsonify(_attempt_body(strategy, accepted=accepted)), 200


@payments_bp.post("/attempts/<ref>/error")
def attempt_error(ref: str):
    strategy, missing = _attempt_or_404(ref)
    if missing:
        return missing
    data = request.get_json(silent=True) or {}
    message = str(data.get("message") or "payment failed") if isinstance(data, dict) else "payment failed"
    accepted = strategy.fail(message)
    return jsonify(_attempt_body(strategy, accepted=accepted)), 200


@payments_bp.post("/attempts/<ref>/cancel")
def attempt_cancel(ref: str):
    strategy, missing = _attempt_or_404(ref)
    if missing:
        return missing
    accepted = strategy.cancel()
    return jsonify(_attempt_body(strategy, accepted=accepted)), 200


@payments_bp.post("/attempts/<ref>/poll")
def attempt_poll(ref: str):
    strategy, missing = _attempt_or_404(ref)
    if missing:
        return missing
    try:
        accepted = strategy.poll()
    except PaymentError as exc:
        return error_response(exc)
    return jsonify(_attempt_body(strategy, accepted=accepted)), 200
