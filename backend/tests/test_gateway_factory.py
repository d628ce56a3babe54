from __future__ import annotations

import unittest

from paycore.config import PaymentsSettings
from paycore.integrations.common import (
    IntegrationDisabledError,
    IntegrationMisconfiguredError,
    UnsupportedCombinationError,
)
from paycore.integrations.payments.catalog import GatewayCatalog, GatewayDescriptor, build_catalog
from paycore.integrations.payments.factory import VARIANTS, GatewayFactory, gateway_health
from paycore.integrations.payments.hosted_provider import HostedCheckoutGateway
from paycore.integrations.payments.lightbox_provider import LightboxGateway, LightboxMethod
from paycore.integrations.payments.mock_provider import MockGateway


def _settings(**overrides) -> PaymentsSettings:
    fields = {
        "mode": "sandbox",
        "hosted_base_url": "https://hosted.example.com/api",
        "hosted_merchant_id": "11000000025",
        "hosted_terminal_id": "800022",
        "hosted_api_key": "api-key",
        "hosted_secret_key": "hosted-secret",
        "lightbox_merchant_id": "11000000025",
        "lightbox_terminal_id": "800022",
        "lightbox_secret_key_hex": "0123456789abcdef0123456789abcdef",
    }
    fields.update(overrides)
    return PaymentsSettings(**fields)


def _factory(settings: PaymentsSettings | None = None) -> GatewayFactory:
    settings = settings or _settings()
    return GatewayFactory(build_catalog(settings), settings)


class GatewayCatalogTestCase(unittest.TestCase):
    def test_sandbox_catalog_includes_mock_gateways(self):
        ids = [d.id for d in build_catalog(_settings())]
        self.assertIn("mock-card", ids)
        self.assertIn("lightbox-wallet", ids)
        live_ids = [d.id for d in build_catalog(_settings(mode="live"))]
        self.assertNotIn("mock-card", live_ids)

    def test_disabled_gateways_are_listed_but_not_enabled(self):
        catalog = build_catalog(_settings(disabled_gateways=("lightbox-wallet",)))
        self.assertFalse(catalog.get("lightbox-wallet").enabled)
        self.assertNotIn("lightbox-wallet", [d.id for d in catalog.enabled()])

    def test_enabled_sorted_by_sort_order(self):
        orders = [d.sort_order for d in build_catalog(_settings()).enabled()]
        self.assertEqual(orders, sorted(orders))

    def test_duplicates_rejected(self):
        a = GatewayDescriptor(id="x", provider="mock", method="card")
        with self.assertRaises(ValueError):
            GatewayCatalog([a, GatewayDescriptor(id="x", provider="mock", method="wallet")])
        with self.assertRaises(ValueError):
            GatewayCatalog([a, GatewayDescriptor(id="y", provider="mock", method="card")])


class GatewayFactoryTestCase(unittest.TestCase):
    def test_every_enabled_descriptor_resolves(self):
        factory = _factory()
        for descriptor in factory.catalog.enabled():
            with self.subTest(gateway=descriptor.id):
                gateway = factory.resolve(descriptor.provider, descriptor.method)
                self.assertEqual(gateway.provider, descriptor.provider)
                self.assertEqual(gateway.method, descriptor.method)

    def test_every_default_pair_has_a_variant(self):
        for descriptor in build_catalog(_settings()):
            self.assertIn(descriptor.pair, VARIANTS)

    def test_resolves_concrete_types(self):
        factory = _factory()
        self.assertIsInstance(factory.resolve("hosted", "card"), HostedCheckoutGateway)
        self.assertIsInstance(factory.resolve("mock", "wallet"), MockGateway)
        card = factory.resolve("lightbox", "card")
        wallet = factory.resolve(" LightBox ", "WALLET")
        self.assertIsInstance(card, LightboxGateway)
        self.assertEqual(card.method_selector, LightboxMethod.CARD)
        self.assertEqual(wallet.method_selector, LightboxMethod.WALLET)
        self.assertEqual(wallet.secret_key, bytes.fromhex("0123456789abcdef0123456789abcdef"))

    def test_hosted_gateways_share_one_session(self):
        factory = _factory()
        first = factory.resolve("hosted", "card")
        second = factory.resolve("hosted", "card")
        self.assertIsNot(first, second)
        self.assertIs(first.session, second.session)
        self.assertIs(first.session, factory.session)

    def test_unsupported_pair(self):
        factory = _factory()
        with self.assertRaises(UnsupportedCombinationError) as ctx:
            factory.resolve("hosted", "wallet")
        self.assertEqual(ctx.exception.provider, "hosted")
        self.assertEqual(ctx.exception.method, "wallet")
        with self.assertRaises(UnsupportedCombinationError):
            factory.resolve("", "")

    def test_disabled_descriptor_does_not_resolve(self):
        factory = _factory(_settings(disabled_gateways=("hosted-card",)))
        with self.assertRaises(UnsupportedCombinationError):
            factory.resolve("hosted", "card")

    def test_disabled_mode(self):
        factory = _factory(_settings(mode="disabled"))
        with self.assertRaises(IntegrationDisabledError):
            factory.resolve("lightbox", "card")

    def test_missing_credentials(self):
        factory = _factory(_settings(hosted_api_key="", hosted_secret_key=""))
        with self.assertRaises(IntegrationMisconfiguredError) as ctx:
            factory.resolve("hosted", "card")
        self.assertIn("HOSTED_API_KEY", str(ctx.exception))
        self.assertIn("HOSTED_SECRET_KEY", str(ctx.exception))

    def test_bad_lightbox_secret(self):
        factory = _factory(_settings(lightbox_secret_key_hex="zz"))
        with self.assertRaises(IntegrationMisconfiguredError):
            factory.resolve("lightbox", "card")

    def test_unknown_catalog_entry_rejected_at_construction(self):
        catalog = GatewayCatalog([GatewayDescriptor(id="crypto", provider="crypto", method="btc")])
        with self.assertRaises(IntegrationMisconfiguredError):
            GatewayFactory(catalog, _settings())


class GatewayHealthTestCase(unittest.TestCase):
    def test_configured(self):
        settings = _settings()
        health = gateway_health(settings, build_catalog(settings))
        self.assertEqual(health["status"], "configured")
        self.assertEqual(health["providers"]["lightbox"]["gateways"], ["lightbox-card", "lightbox-wallet"])
        self.assertEqual(health["providers"]["mock"]["missing"], [])

    def test_misconfigured(self):
        settings = _settings(lightbox_terminal_id="")
        health = gateway_health(settings, build_catalog(settings))
        self.assertEqual(health["status"], "misconfigured")
        self.assertEqual(health["providers"]["lightbox"]["missing"], ["LIGHTBOX_TERMINAL_ID"])
        self.assertEqual(health["providers"]["hosted"]["status"], "configured")

    def test_disabled(self):
        settings = _settings(mode="disabled")
        health = gateway_health(settings, build_catalog(settings))
        self.assertEqual(health["status"], "disabled")
        self.assertTrue(all(p["status"] == "disabled" for p in health["providers"].values()))


if __name__ == "__main__":
    unittest.main()
