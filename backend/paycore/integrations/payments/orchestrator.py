from __future__ import annotations

import logging
from functools import partial

import requests

from paycore.integrations.common import PaymentError
from paycore.integrations.payments.catalog import build_catalog
from paycore.integrations.payments.factory import GatewayFactory
from paycore.integrations.payments.models import PaymentContext, PaymentRequest, PaymentResult, TransactionHandle
from paycore.integrations.payments.reporter import (
    NullResultReporter,
    ResultReporter,
    build_result_reporter,
    outcome_record,
)
from paycore.integrations.payments.signature import canonicalize
from paycore.integrations.payments.strategy import AttemptSignals, ExecutionStrategy

logger = logging.getLogger(__name__)


class ExecutionSurface:
    """Whatever shows the handle to the payer: a redirect, a webview, a test double."""

    def present(self, handle: TransactionHandle, signals: AttemptSignals) -> None:
        raise NotImplementedError


class PaymentOrchestrator:
    def __init__(
        self,
        factory: GatewayFactory,
        reporter: ResultReporter | None = None,
        *,
        surface: ExecutionSurface | None = None,
        timeout: float | None = None,
    ):
        self.factory = factory
        self.reporter = reporter or NullResultReporter()
        self.surface = surface
        self.timeout = timeout

    def begin(self, request: PaymentRequest) -> ExecutionStrategy:
        """Start an attempt and return its strategy without waiting.

        Raises ``PaymentError`` when the attempt cannot be started; a failed
        creation call is not raised but resolves the returned strategy.
        """
        request.validate()
        gateway = self.factory.resolve(request.provider, request.method)
        token = gateway.authenticate()
        message = canonicalize(gateway.signed_fields(request, token))
        signature = gateway.generate_signature(gateway.signing_key, message)
        context = PaymentContext(request=request, signature=signature, auth_token=token)
        strategy = gateway.get_execution_strategy(context)
        strategy.add_listener(partial(self._report, request))
        strategy.start()
        return strategy

    def process(
        self,
        request: PaymentRequest,
        *,
        surface: ExecutionSurface | None = None,
        timeout: float | None = None,
    ) -> PaymentResult:
        ref = str(getattr(request, "merchant_reference", "") or "")
        strategy: ExecutionStrategy | None = None
        try:
            strategy = self.begin(request)
            if strategy.is_terminal:
                return strategy.wait()
            surface = surface or self.surface
            if surface is not None:
                surface.present(strategy.handle, strategy.signals())
            result = strategy.wait(timeout if timeout is not None else self.timeout)
            if result is None:
                strategy.fail("timed out waiting for confirmation", retryable=True)
                result = strategy.wait()
            return result
        except Exception as exc:
            if isinstance(exc, PaymentError):
                logger.warning("payment_process_failed ref=%s code=%s err=%s", ref, exc.code, exc)
            else:
                logger.exception("payment_process_failed ref=%s", ref)
            result = PaymentResult.from_exception(exc, merchant_reference=ref)
            if strategy is not None:
                strategy.fail(result.message, retryable=result.retryable)
                return strategy.wait()
            self._report(request, result)
            return result

    def _report(self, request, result: PaymentResult) -> None:
        record = outcome_record(request if isinstance(request, PaymentRequest) else None, result)
        try:
            delivered = self.reporter.report([record])
        except Exception:
            logger.exception("payment_report_failed ref=%s reporter=%s", record.get("merchant_reference"), self.reporter.name)
            return
        if not delivered:
            logger.warning(
                "payment_report_failed ref=%s reporter=%s status=%s",
                record.get("merchant_reference"),
                self.reporter.name,
                result.status,
            )


def build_orchestrator(settings, *, session=None, reporter: ResultReporter | None = None) -> PaymentOrchestrator:
    session = session or requests.Session()
    factory = GatewayFactory(build_catalog(settings), settings, session=session)
    return PaymentOrchestrator(
        factory,
        reporter or build_result_reporter(settings, session=session),
        timeout=float(getattr(settings, "attempt_timeout_seconds", 900) or 900),
    )
