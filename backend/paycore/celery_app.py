from __future__ import annotations

import json
import os
from datetime import datetime, timezone

from celery import Celery
from celery.signals import task_failure, task_retry


_SIGNALS_BOUND = False

REPORT_TASK = "paycore.tasks.report_tasks.deliver_payment_results"


def _broker_url() -> str:
    return (
        (os.getenv("CELERY_BROKER_URL") or "").strip()
        or (os.getenv("REDIS_URL") or "").strip()
        or "redis://localhost:6379/0"
    )


def _result_backend(broker_url: str) -> str:
    return (
        (os.getenv("CELERY_RESULT_BACKEND") or "").strip()
        or (os.getenv("REDIS_URL") or "").strip()
        or broker_url
    )


def _report_queue() -> str:
    return (os.getenv("PAYMENTS_REPORT_QUEUE") or "payments-reporting").strip() or "payments-reporting"


def _result_refs(kwargs) -> list[str]:
    results = (kwargs or {}).get("results") or []
    if not isinstance(results, (list, tuple)):
        return []
    return [str((r or {}).get("merchant_reference") or "") for r in results if isinstance(r, dict)]


def _bind_task_observers(flask_app) -> None:
    global _SIGNALS_BOUND
    if _SIGNALS_BOUND:
        return

    @task_failure.connect(weak=False)
    def _on_task_failure(sender=None, task_id=None, exception=None, args=None, kwargs=None, einfo=None, **extra):
        payload = {
            "event": "celery_task_failure",
            "task_name": getattr(sender, "name", "") if sender is not None else "",
            "task_id": str(task_id or ""),
            "trace_id": str((kwargs or {}).get("trace_id") or ""),
            "merchant_references": _result_refs(kwargs),
            "exception": str(exception or ""),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        flask_app.logger.error(json.dumps(payload))

    @task_retry.connect(weak=False)
    def _on_task_retry(request=None, reason=None, einfo=None, **extra):
        kwargs = getattr(request, "kwargs", None)
        payload = {
            "event": "celery_task_retry",
            "task_name": str(getattr(request, "task", "") or ""),
            "task_id": str(getattr(request, "id", "") or ""),
            "trace_id": str((kwargs or {}).get("trace_id") or ""),
            "merchant_references": _result_refs(kwargs),
            "reason": str(reason or ""),
            "retry_count": int(getattr(request, "retries", 0) or 0),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        flask_app.logger.warning(json.dumps(payload))

    _SIGNALS_BOUND = True


def create_celery_app(flask_app) -> Celery:
    """Worker app for outcome delivery; tasks run inside the Flask app context."""
    broker = _broker_url()
    celery = Celery(flask_app.import_name, broker=broker, backend=_result_backend(broker))
    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        broker_connection_retry_on_startup=True,
        task_routes={REPORT_TASK: {"queue": _report_queue()}},
        result_expires=24 * 3600,
        timezone="UTC",
        enable_utc=True,
    )

    class FlaskContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with flask_app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskContextTask
    celery.set_default()
    celery.autodiscover_tasks(["paycore.tasks"], related_name="report_tasks")
    _bind_task_observers(flask_app)
    return celery
