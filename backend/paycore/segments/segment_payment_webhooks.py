from __future__ import annotations

import json

from flask import Blueprint, current_app, jsonify, request

from paycore.integrations.common import PaymentError
from paycore.integrations.payments.strategy import RedirectStrategy
from paycore.utils.observability import get_request_id

webhooks_bp = Blueprint("webhooks_bp", __name__, url_prefix="/api/webhooks")


def _routing_payload(raw: bytes) -> dict:
    # Only used to find the attempt; the signature is checked over the raw bytes.
    try:
        payload = json.loads(raw.decode("utf-8", errors="replace") or "{}")
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@webhooks_bp.post("/<provider>")
def provider_webhook(provider: str):
    provider = (provider or "").strip().lower()
    try:
        raw = request.get_data() or b""
        sig = request.headers.get("X-Signature")
        payload = _routing_payload(raw)
        ref = str(payload.get("MerchantReference") or "").strip()

        strategy = current_app.extensions["paycore.attempts"].get(ref) if ref else None
        if strategy is None or strategy.context.request.provider != provider:
            return jsonify({"ok": True, "ignored": True, "provider": provider}), 200
        if not isinstance(strategy, RedirectStrategy):
            return jsonify({"ok": False, "error": "NOT_A_REDIRECT_ATTEMPT"}), 409

        attempt_request = strategy.context.request
        gateway = current_app.extensions["paycore.orchestrator"].factory.resolve(attempt_request.provider, attempt_request.method)
        if not gateway.verify_notification(raw, sig):
            current_app.logger.warning("webhook_signature_invalid provider=%s ref=%s", provider, ref)
            return jsonify({"ok": False, "error": "INVALID_SIGNATURE"}), 401

        accepted = strategy.notify(raw)
        return jsonify({"ok": True, "accepted": accepted, "state": strategy.state, "trace_id": get_request_id()}), 200
    except PaymentError as exc:
        current_app.logger.warning("webhook_rejected provider=%s code=%s err=%s", provider, exc.code, exc)
        return jsonify({"ok": False, "error": exc.code}), 200
    except Exception:
        current_app.logger.exception("webhook_handler_failed provider=%s", provider)
        return jsonify({"ok": False, "error": "WEBHOOK_HANDLER_FAILED"}), 200
