import logging
import os

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from paycore.config import PaymentsSettings, load_settings
from paycore.extensions import cors
from paycore.integrations.payments.factory import gateway_health
from paycore.integrations.payments.orchestrator import PaymentOrchestrator, build_orchestrator
from paycore.segments.segment_payment_webhooks import webhooks_bp
from paycore.segments.segment_payments import payments_bp
from paycore.services.attempt_registry import AttemptRegistry
from paycore.utils.observability import init_sentry, install_request_observers


def _configure_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    logging.getLogger("paycore").setLevel(getattr(logging, level, logging.INFO))


def create_app(settings: PaymentsSettings | None = None, *, orchestrator: PaymentOrchestrator | None = None):
    app = Flask(__name__)
    _configure_logging()

    env = (os.getenv("PAYCORE_ENV", "dev") or "dev").strip().lower()
    settings = settings or load_settings()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (os.getenv("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if settings.mode == "sandbox":
            raise RuntimeError("PAYMENTS_MODE=sandbox is not allowed in production")

    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret")
    app.config["PAYMENTS_MODE"] = settings.mode
    init_sentry(app)

    # The embedded checkout surface posts its callbacks from a browser context.
    cors_origins = (os.getenv("CORS_ORIGINS") or "").strip()
    if env in ("prod", "production"):
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    else:
        origins = ["*"] if not cors_origins else [o.strip() for o in cors_origins.split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    install_request_observers(app)

    app.extensions["paycore.settings"] = settings
    app.extensions["paycore.orchestrator"] = orchestrator or build_orchestrator(settings)
    app.extensions["paycore.attempts"] = AttemptRegistry()

    @app.errorhandler(HTTPException)
    def _api_http_exception(error: HTTPException):
        if not request.path.startswith("/api/"):
            return error
        payload = {
            "ok": False,
            "error": error.name,
            "message": error.description or error.name,
            "status": int(error.code or 500),
        }
        rid = (getattr(g, "request_id", "") or "").strip()
        if rid:
            payload["trace_id"] = rid
        return jsonify(payload), int(error.code or 500)

    @app.errorhandler(Exception)
    def _api_unhandled_exception(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        payload = {
            "ok": False,
            "error": "InternalServerError",
            "message": "Internal server error",
            "status": 500,
        }
        rid = (getattr(g, "request_id", "") or "").strip()
        if rid:
            payload["trace_id"] = rid
        return jsonify(payload), 500

    @app.get("/api/health")
    def health():
        orch = app.extensions["paycore.orchestrator"]
        body = gateway_health(settings, orch.factory.catalog)
        body["ok"] = body["status"] != "misconfigured"
        body["live_attempts"] = app.extensions["paycore.attempts"].live_count()
        return jsonify(body), 200

    app.register_blueprint(payments_bp)
    app.register_blueprint(webhooks_bp)

    return app
