from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone

import requests
from celery import shared_task

from paycore.config import load_settings
from paycore.integrations.payments.reporter import HttpResultReporter

logger = logging.getLogger(__name__)

_SESSION: requests.Session | None = None


def _session() -> requests.Session:
    # Reused across task runs in this worker process.
    global _SESSION
    if _SESSION is None:
        _SESSION = requests.Session()
    return _SESSION


def _retry_countdown(retries: int) -> int:
    return int(min(900, max(5, 5 * (2 ** int(max(0, retries))))))


def _task_log(task_name: str, *, status: str, started_at: float, trace_id: str = "", **extra):
    duration_ms = int(max(0.0, (time.perf_counter() - float(started_at))) * 1000.0)
    payload = {
        "task_name": task_name,
        "status": status,
        "duration_ms": duration_ms,
        "trace_id": str(trace_id or ""),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    payload.update(extra or {})
    logger.info(json.dumps(payload))


@shared_task(bind=True, name="paycore.tasks.report_tasks.deliver_payment_results", max_retries=5)
def deliver_payment_results(self, results: list, trace_id: str = ""):
    started = time.perf_counter()
    refs = [str((r or {}).get("merchant_reference") or "") for r in results or []]
    settings = load_settings()
    if not settings.report_url:
        _task_log("deliver_payment_results", status="skipped_no_url", started_at=started, trace_id=trace_id, refs=refs)
        return {"ok": False, "skipped": "report_url_missing"}

    reporter = HttpResultReporter(
        url=settings.report_url,
        token=settings.report_token,
        trace_id=trace_id,
        session=_session(),
    )
    if reporter.report(results or []):
        _task_log("deliver_payment_results", status="delivered", started_at=started, trace_id=trace_id, refs=refs)
        return {"ok": True, "delivered": len(refs)}

    retries = int(self.request.retries or 0)
    if retries < int(self.max_retries or 0):
        countdown = _retry_countdown(retries)
        _task_log(
            "deliver_payment_results",
            status="retrying",
            started_at=started,
            trace_id=trace_id,
            refs=refs,
            countdown=countdown,
        )
        raise self.retry(countdown=countdown)
    _task_log("deliver_payment_results", status="failed", started_at=started, trace_id=trace_id, refs=refs)
    return {"ok": False, "delivered": 0}
