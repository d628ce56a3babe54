"""Delivery of resolved payment outcomes to the backend notification endpoint.

Which reporter is used is a deployment decision (``PAYMENTS_REPORT_POLICY``):

- ``sync``: one in-process POST, fire-and-forget.
- ``queued``: hand the records to a Celery task that retries with backoff.
- ``disabled``: log only.

A reporter never changes an outcome; it only says whether delivery worked.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

import requests

from paycore.integrations.payments.models import PaymentRequest, PaymentResult
from paycore.utils.observability import get_request_id

logger = logging.getLogger(__name__)


def outcome_record(request: PaymentRequest | None, result: PaymentResult) -> dict:
    record = result.to_dict()
    if request is not None:
        record.update(
            {
                "merchant_reference": request.merchant_reference,
                "provider": request.provider,
                "method": request.method,
                "amount": request.amount,
                "transaction_time": request.transaction_time,
            }
        )
    record["resolved_at"] = datetime.now(timezone.utc).isoformat()
    return record


class ResultReporter:
    name = "unknown"

    def report(self, results: Sequence[dict]) -> bool:
        raise NotImplementedError


class NullResultReporter(ResultReporter):
    name = "null"

    def report(self, results: Sequence[dict]) -> bool:
        for record in results:
            logger.info(
                "payment_report_skipped ref=%s status=%s",
                record.get("merchant_reference"),
                record.get("status"),
            )
        return True


class HttpResultReporter(ResultReporter):
    name = "http"

    def __init__(
        self,
        *,
        url: str,
        token: str = "",
        timeout: float = 12.0,
        session: requests.Session | None = None,
        trace_id: str = "",
    ):
        self.url = url
        self.token = token
        self.trace_id = trace_id
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    def report(self, results: Sequence[dict]) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        rid = self.trace_id or get_request_id()
        if rid:
            headers["X-Request-Id"] = rid
        try:
            r = self.session.post(self.url, json={"results": list(results)}, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("payment_report_failed url=%s err=%s", self.url, exc)
            return False
        if r.status_code < 200 or r.status_code >= 300:
            logger.warning("payment_report_failed url=%s status=%s", self.url, r.status_code)
            return False
        return True


class QueuedResultReporter(ResultReporter):
    name = "queued"

    def report(self, results: Sequence[dict]) -> bool:
        from paycore.tasks.report_tasks import deliver_payment_results

        try:
            deliver_payment_results.delay(results=list(results), trace_id=get_request_id())
        except Exception as exc:
            logger.warning("payment_report_enqueue_failed err=%s", exc)
            return False
        return True


def build_result_reporter(settings, *, session: requests.Session | None = None) -> ResultReporter:
    policy = (getattr(settings, "report_policy", "sync") or "sync").strip().lower()
    if policy == "disabled":
        return NullResultReporter()
    if policy == "queued":
        return QueuedResultReporter()
    url = (getattr(settings, "report_url", "") or "").strip()
    if not url:
        logger.warning("payment_report_url_missing policy=%s", policy)
        return NullResultReporter()
    return HttpResultReporter(url=url, token=getattr(settings, "report_token", "") or "", session=session)
