"""Gateway abstraction and execution-strategy layer.

Typical use::

    orchestrator = build_orchestrator(load_settings())
    result = orchestrator.process(request, surface=my_surface, timeout=600)
"""

from paycore.integrations.payments.base import PaymentGateway
from paycore.integrations.payments.catalog import GatewayCatalog, GatewayDescriptor, build_catalog
from paycore.integrations.payments.factory import GatewayFactory
from paycore.integrations.payments.models import (
    RENDER_LOCALLY,
    CompletionRecord,
    PaymentContext,
    PaymentRequest,
    PaymentResult,
    TransactionHandle,
)
from paycore.integrations.payments.orchestrator import ExecutionSurface, PaymentOrchestrator, build_orchestrator
from paycore.integrations.payments.reporter import ResultReporter
from paycore.integrations.payments.strategy import AttemptSignals, AttemptState, ExecutionStrategy

__all__ = [
    "RENDER_LOCALLY",
    "AttemptSignals",
    "AttemptState",
    "CompletionRecord",
    "ExecutionStrategy",
    "ExecutionSurface",
    "GatewayCatalog",
    "GatewayDescriptor",
    "GatewayFactory",
    "PaymentContext",
    "PaymentGateway",
    "PaymentOrchestrator",
    "PaymentRequest",
    "PaymentResult",
    "ResultReporter",
    "TransactionHandle",
    "build_catalog",
    "build_orchestrator",
]
