"""Per-attempt state machine.

An attempt is started once, waits in ``awaiting_confirmation`` for a signal
from the execution surface (or a webhook / status poll) and resolves exactly
once. Whichever signal takes the lock first decides the outcome; anything that
arrives afterwards is dropped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable

from paycore.integrations.common import UnsupportedOperationError, ValidationError
from paycore.integrations.payments.models import (
    CompletionRecord,
    PaymentContext,
    PaymentResult,
    TransactionHandle,
    parse_completion_payload,
)

logger = logging.getLogger(__name__)


class AttemptState:
    CREATED = "created"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RESOLVED_SUCCESS = "resolved_success"
    RESOLVED_ERROR = "resolved_error"
    RESOLVED_CANCELLED = "resolved_cancelled"

    TERMINAL = {RESOLVED_SUCCESS, RESOLVED_ERROR, RESOLVED_CANCELLED}
    ALLOWED = {
        CREATED: {AWAITING_CONFIRMATION, RESOLVED_ERROR},
        AWAITING_CONFIRMATION: {RESOLVED_SUCCESS, RESOLVED_ERROR, RESOLVED_CANCELLED},
        RESOLVED_SUCCESS: set(),
        RESOLVED_ERROR: set(),
        RESOLVED_CANCELLED: set(),
    }


@dataclass(frozen=True)
class AttemptSignals:
    on_complete: Callable[[Any], bool]
    on_error: Callable[[str], bool]
    on_cancel: Callable[[], bool]


ResultListener = Callable[[PaymentResult], None]


class ExecutionStrategy:
    delivery = "unknown"

    def __init__(
        self,
        *,
        context: PaymentContext,
        create: Callable[[], TransactionHandle],
        parse_completion: Callable[[Any], CompletionRecord] = parse_completion_payload,
    ):
        self.context = context
        self._create = create
        self._parse_completion = parse_completion
        self._lock = threading.Lock()
        self._resolved = threading.Event()
        self._started = False
        self._state = AttemptState.CREATED
        self._handle: TransactionHandle | None = None
        self._result: PaymentResult | None = None
        self._listeners: list[ResultListener] = []

    @property
    def merchant_reference(self) -> str:
        return self.context.merchant_reference

    @property
    def state(self) -> str:
        return self._state

    @property
    def handle(self) -> TransactionHandle | None:
        return self._handle

    @property
    def result(self) -> PaymentResult | None:
        return self._result

    @property
    def is_terminal(self) -> bool:
        return self._state in AttemptState.TERMINAL

    def add_listener(self, listener: ResultListener) -> None:
        with self._lock:
            result = self._result
            if result is None:
                self._listeners.append(listener)
                return
        self._notify(listener, result)

    def signals(self) -> AttemptSignals:
        return AttemptSignals(
            on_complete=self.complete,
            on_error=lambda message: self.fail(message),
            on_cancel=self.cancel,
        )

    def start(self) -> TransactionHandle | None:
        with self._lock:
            if self._started:
                raise UnsupportedOperationError(f"attempt {self.merchant_reference} already started")
            self._started = True
        try:
            handle = self._create()
        except Exception as exc:
            logger.warning("attempt_creation_failed ref=%s err=%s", self.merchant_reference, exc)
            self._transition(
                AttemptState.RESOLVED_ERROR,
                result=PaymentResult.from_exception(exc, merchant_reference=self.merchant_reference),
                signal="create",
            )
            return None
        if not self._transition(AttemptState.AWAITING_CONFIRMATION, handle=handle, signal="create"):
            return None
        return handle

    def complete(self, payload: Any) -> bool:
        try:
            record = self._parse_completion(payload)
        except Exception as exc:
            return self._reject_payload(exc, signal="complete")
        return self._transition(AttemptState.RESOLVED_SUCCESS, result=self._success_result(record), signal="complete")

    def fail(self, message: str, *, retryable: bool = False) -> bool:
        return self._transition(
            AttemptState.RESOLVED_ERROR,
            result=PaymentResult.error(message, retryable=retryable, merchant_reference=self.merchant_reference),
            signal="error",
        )

    def cancel(self) -> bool:
        return self._transition(
            AttemptState.RESOLVED_CANCELLED,
            result=PaymentResult.cancelled(merchant_reference=self.merchant_reference),
            signal="cancel",
        )

    def poll(self) -> bool:
        raise UnsupportedOperationError(f"{self.delivery} attempts cannot be polled")

    def wait(self, timeout: float | None = None) -> PaymentResult | None:
        if self._resolved.wait(timeout):
            return self._result
        return None

    def snapshot(self) -> dict:
        return {
            "merchant_reference": self.merchant_reference,
            "delivery": self.delivery,
            "state": self._state,
            "handle": self._handle.to_dict() if self._handle else None,
            "result": self._result.to_dict() if self._result else None,
        }

    def _reject_payload(self, exc: Exception, *, signal: str) -> bool:
        if not isinstance(exc, ValidationError):
            logger.exception("completion_parse_failed ref=%s signal=%s", self.merchant_reference, signal)
        return self._transition(
            AttemptState.RESOLVED_ERROR,
            result=PaymentResult.error(
                f"invalid completion payload: {exc}",
                retryable=False,
                merchant_reference=self.merchant_reference,
            ),
            signal=signal,
        )

    def _success_result(self, record: CompletionRecord) -> PaymentResult:
        invoice_id = self._handle.invoice_id if self._handle else self.merchant_reference
        return PaymentResult.success(
            invoice_id=invoice_id,
            external_reference=record.system_reference,
            status_label=record.paid_through or "paid",
            merchant_reference=self.merchant_reference,
        )

    def _transition(
        self,
        target: str,
        *,
        signal: str,
        handle: TransactionHandle | None = None,
        result: PaymentResult | None = None,
    ) -> bool:
        with self._lock:
            current = self._state
            if target not in AttemptState.ALLOWED.get(current, set()):
                if current in AttemptState.TERMINAL:
                    logger.info(
                        "late_signal_dropped ref=%s signal=%s state=%s",
                        self.merchant_reference,
                        signal,
                        current,
                    )
                else:
                    logger.warning(
                        "attempt_transition_rejected ref=%s signal=%s %s->%s",
                        self.merchant_reference,
                        signal,
                        current,
                        target,
                    )
                return False
            self._state = target
            if handle is not None:
                self._handle = handle
            listeners: list[ResultListener] = []
            if target in AttemptState.TERMINAL:
                self._result = result
                listeners = list(self._listeners)
                self._listeners.clear()
        logger.info(
            "attempt_transition ref=%s signal=%s from=%s to=%s",
            self.merchant_reference,
            signal,
            current,
            target,
        )
        if target in AttemptState.TERMINAL:
            for listener in listeners:
                self._notify(listener, result)
            self._resolved.set()
        return True

    def _notify(self, listener: ResultListener, result: PaymentResult) -> None:
        try:
            listener(result)
        except Exception:
            logger.exception("attempt_listener_failed ref=%s", self.merchant_reference)


class RedirectStrategy(ExecutionStrategy):
    """User leaves for a hosted page; completion arrives by webhook or poll."""

    delivery = "redirect"

    def __init__(self, *, status_check: Callable[[], CompletionRecord], **kwargs):
        super().__init__(**kwargs)
        self._status_check = status_check

    def poll(self) -> bool:
        if self._state != AttemptState.AWAITING_CONFIRMATION:
            logger.info("attempt_poll_skipped ref=%s state=%s", self.merchant_reference, self._state)
            return False
        try:
            record = self._status_check()
        except Exception as exc:
            result = PaymentResult.from_exception(exc, merchant_reference=self.merchant_reference)
            return self._transition(AttemptState.RESOLVED_ERROR, result=result, signal="poll")
        if not record.paid:
            return False
        return self._transition(AttemptState.RESOLVED_SUCCESS, result=self._success_result(record), signal="poll")

    def notify(self, payload: Any) -> bool:
        """Apply a provider notification: paid completes, anything else fails."""
        try:
            record = self._parse_completion(payload)
        except Exception as exc:
            return self._reject_payload(exc, signal="notify")
        if record.paid:
            return self._transition(AttemptState.RESOLVED_SUCCESS, result=self._success_result(record), signal="notify")
        return self.fail("payment was not completed", retryable=True)


class EmbeddedStrategy(ExecutionStrategy):
    """Signed configuration rendered in an embedded surface with three callbacks."""

    delivery = "embedded"
