from __future__ import annotations

import logging
from functools import partial
from typing import Callable

import requests

from paycore.integrations.common import (
    IntegrationDisabledError,
    IntegrationMisconfiguredError,
    UnsupportedCombinationError,
)
from paycore.integrations.payments.base import PaymentGateway
from paycore.integrations.payments.catalog import GatewayCatalog, GatewayDescriptor
from paycore.integrations.payments.hosted_provider import HostedCheckoutGateway
from paycore.integrations.payments.lightbox_provider import LightboxGateway, LightboxMethod
from paycore.integrations.payments.mock_provider import MockGateway
from paycore.integrations.payments.signature import secret_from_hex

logger = logging.getLogger(__name__)

GatewayBuilder = Callable[[GatewayDescriptor, object, "requests.Session | None"], PaymentGateway]

# env var -> settings attribute
_REQUIRED = {
    "hosted": {
        "HOSTED_BASE_URL": "hosted_base_url",
        "HOSTED_MERCHANT_ID": "hosted_merchant_id",
        "HOSTED_TERMINAL_ID": "hosted_terminal_id",
        "HOSTED_API_KEY": "hosted_api_key",
        "HOSTED_SECRET_KEY": "hosted_secret_key",
    },
    "lightbox": {
        "LIGHTBOX_MERCHANT_ID": "lightbox_merchant_id",
        "LIGHTBOX_TERMINAL_ID": "lightbox_terminal_id",
        "LIGHTBOX_SECRET_KEY_HEX": "lightbox_secret_key_hex",
    },
    "mock": {},
}


def _settings_value(settings, key: str, default=None):
    return getattr(settings, key, default)


def _missing(settings, provider: str) -> list[str]:
    return [env for env, attr in _REQUIRED.get(provider, {}).items() if not str(_settings_value(settings, attr, "") or "").strip()]


def _require(settings, provider: str) -> None:
    missing = _missing(settings, provider)
    if missing:
        raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:missing {', '.join(missing)}")


def _build_hosted(descriptor: GatewayDescriptor, settings, session) -> PaymentGateway:
    _require(settings, "hosted")
    return HostedCheckoutGateway(
        descriptor,
        base_url=settings.hosted_base_url,
        merchant_id=settings.hosted_merchant_id,
        terminal_id=settings.hosted_terminal_id,
        api_key=settings.hosted_api_key,
        secret_key=settings.hosted_secret_key,
        timeout=float(_settings_value(settings, "hosted_timeout_seconds", 25) or 25),
        session=session,
    )


def _build_lightbox(descriptor: GatewayDescriptor, settings, session, *, selector: int) -> PaymentGateway:
    _require(settings, "lightbox")
    return LightboxGateway(
        descriptor,
        merchant_id=settings.lightbox_merchant_id,
        terminal_id=settings.lightbox_terminal_id,
        secret_key=secret_from_hex(settings.lightbox_secret_key_hex),
        method_selector=selector,
        script_url=_settings_value(settings, "lightbox_script_url", "") or "",
    )


def _build_mock(descriptor: GatewayDescriptor, settings, session) -> PaymentGateway:
    return MockGateway(descriptor)


VARIANTS: dict[tuple[str, str], GatewayBuilder] = {
    ("hosted", "card"): _build_hosted,
    ("lightbox", "card"): partial(_build_lightbox, selector=LightboxMethod.CARD),
    ("lightbox", "wallet"): partial(_build_lightbox, selector=LightboxMethod.WALLET),
    ("mock", "card"): _build_mock,
    ("mock", "wallet"): _build_mock,
}


class GatewayFactory:
    def __init__(self, catalog: GatewayCatalog, settings, *, session: requests.Session | None = None):
        unknown = [d.id for d in catalog if d.pair not in VARIANTS]
        if unknown:
            raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:unknown gateways {', '.join(unknown)}")
        self.catalog = catalog
        self.settings = settings
        # One pooled session for every gateway this factory resolves.
        self.session = session or requests.Session()

    def resolve(self, provider: str, method: str) -> PaymentGateway:
        p = (provider or "").strip().lower()
        m = (method or "").strip().lower()
        mode = (_settings_value(self.settings, "mode", "sandbox") or "sandbox").strip().lower()
        if mode == "disabled":
            raise IntegrationDisabledError("INTEGRATION_DISABLED:payments")
        descriptor = self.catalog.lookup(p, m)
        if descriptor is None or not descriptor.enabled:
            raise UnsupportedCombinationError(p, m)
        gateway = VARIANTS[descriptor.pair](descriptor, self.settings, self.session)
        logger.debug("gateway_resolved id=%s provider=%s method=%s", descriptor.id, p, m)
        return gateway


def gateway_health(settings, catalog: GatewayCatalog) -> dict:
    mode = (_settings_value(settings, "mode", "sandbox") or "sandbox").strip().lower()
    providers: dict[str, dict] = {}
    for d in catalog:
        if d.provider in providers:
            providers[d.provider]["gateways"].append(d.id)
            continue
        missing = _missing(settings, d.provider)
        providers[d.provider] = {"gateways": [d.id], "missing": missing}
    for info in providers.values():
        if mode == "disabled":
            info["status"] = "disabled"
        elif info["missing"]:
            info["status"] = "misconfigured"
        else:
            info["status"] = "configured"
    if mode == "disabled":
        status = "disabled"
    elif any(info["status"] == "misconfigured" for info in providers.values()):
        status = "misconfigured"
    else:
        status = "configured"
    return {"status": status, "mode": mode, "providers": providers}
