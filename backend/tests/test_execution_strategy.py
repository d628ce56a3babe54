from __future__ import annotations

import json
import threading
import unittest

from paycore.integrations.common import TransportError, UnsupportedOperationError
from paycore.integrations.payments.models import (
    RENDER_LOCALLY,
    CompletionRecord,
    PaymentContext,
    PaymentRequest,
    TransactionHandle,
)
from paycore.integrations.payments.strategy import (
    AttemptState,
    EmbeddedStrategy,
    RedirectStrategy,
)


def _context(ref: str = "R1") -> PaymentContext:
    req = PaymentRequest(
        provider="lightbox",
        method="card",
        merchant_reference=ref,
        amount=5000,
        transaction_time="20240131235959",
    )
    return PaymentContext(request=req, signature="SIG")


def _embedded(ref: str = "R1", create=None) -> EmbeddedStrategy:
    handle = TransactionHandle(invoice_id=ref, redirect_url=RENDER_LOCALLY, configuration={"OrderId": ref})
    return EmbeddedStrategy(context=_context(ref), create=create or (lambda: handle))


class _StatusCheck:
    def __init__(self, *records):
        self.records = list(records)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        item = self.records.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _redirect(status_check) -> RedirectStrategy:
    handle = TransactionHandle(invoice_id="INV-1", redirect_url="https://pay.example.com/i/INV-1")
    return RedirectStrategy(context=_context(), create=lambda: handle, status_check=status_check)


class EmbeddedStrategyTestCase(unittest.TestCase):
    def test_start_moves_to_awaiting_confirmation(self):
        strategy = _embedded()
        self.assertEqual(strategy.state, AttemptState.CREATED)
        handle = strategy.start()
        self.assertTrue(handle.renders_locally)
        self.assertEqual(strategy.state, AttemptState.AWAITING_CONFIRMATION)
        self.assertIsNone(strategy.result)

    def test_start_twice_rejected(self):
        strategy = _embedded()
        strategy.start()
        with self.assertRaises(UnsupportedOperationError):
            strategy.start()

    def test_complete_resolves_success(self):
        strategy = _embedded()
        strategy.start()
        self.assertTrue(strategy.complete(json.dumps({"SystemReference": "SR1", "PaidThrough": "Card"})))
        result = strategy.wait(1)
        self.assertTrue(result.ok)
        self.assertEqual(result.invoice_id, "R1")
        self.assertEqual(result.external_reference, "SR1")
        self.assertEqual(result.status_label, "Card")
        self.assertEqual(strategy.state, AttemptState.RESOLVED_SUCCESS)

    def test_malformed_completion_resolves_error(self):
        strategy = _embedded()
        strategy.start()
        self.assertTrue(strategy.complete("{not json"))
        result = strategy.result
        self.assertTrue(result.is_error)
        self.assertFalse(result.retryable)
        self.assertEqual(strategy.state, AttemptState.RESOLVED_ERROR)

    def test_out_of_range_amount_still_resolves(self):
        strategy = _embedded()
        strategy.start()
        self.assertTrue(strategy.complete('{"SystemReference": "SR1", "Amount": Infinity}'))
        self.assertEqual(strategy.state, AttemptState.RESOLVED_SUCCESS)
        self.assertEqual(strategy.result.external_reference, "SR1")

    def test_unexpected_parser_failure_resolves_error(self):
        def broken_parser(_payload):
            raise OverflowError("cannot convert Infinity to integer")

        handle = TransactionHandle(invoice_id="R1", redirect_url=RENDER_LOCALLY)
        strategy = EmbeddedStrategy(context=_context(), create=lambda: handle, parse_completion=broken_parser)
        strategy.start()
        self.assertTrue(strategy.complete("{}"))
        self.assertEqual(strategy.state, AttemptState.RESOLVED_ERROR)
        self.assertFalse(strategy.result.retryable)
        self.assertIsNotNone(strategy.wait(0))

    def test_cancel_is_distinct_from_error(self):
        strategy = _embedded()
        strategy.start()
        self.assertTrue(strategy.cancel())
        self.assertTrue(strategy.result.is_cancelled)
        self.assertFalse(strategy.result.is_error)
        self.assertEqual(strategy.state, AttemptState.RESOLVED_CANCELLED)

    def test_first_signal_wins_and_late_signals_are_dropped(self):
        strategy = _embedded()
        strategy.start()
        self.assertTrue(strategy.complete({"SystemReference": "SR1"}))
        self.assertFalse(strategy.fail("late"))
        self.assertFalse(strategy.cancel())
        self.assertFalse(strategy.complete({"SystemReference": "SR2"}))
        self.assertEqual(strategy.result.external_reference, "SR1")

    def test_signals_before_start_are_rejected(self):
        strategy = _embedded()
        self.assertFalse(strategy.cancel())
        self.assertFalse(strategy.complete({"SystemReference": "SR1"}))
        self.assertEqual(strategy.state, AttemptState.CREATED)

    def test_creation_failure_resolves_error(self):
        def boom():
            raise TransportError("gateway down")

        strategy = _embedded(create=boom)
        self.assertIsNone(strategy.start())
        self.assertEqual(strategy.state, AttemptState.RESOLVED_ERROR)
        self.assertTrue(strategy.result.retryable)
        self.assertFalse(strategy.cancel())

    def test_listeners_called_exactly_once(self):
        strategy = _embedded()
        seen = []
        strategy.add_listener(seen.append)
        strategy.start()
        strategy.cancel()
        strategy.fail("late")
        self.assertEqual(len(seen), 1)
        self.assertTrue(seen[0].is_cancelled)

    def test_listener_added_after_resolution_still_called(self):
        strategy = _embedded()
        strategy.start()
        strategy.fail("declined")
        seen = []
        strategy.add_listener(seen.append)
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].message, "declined")

    def test_failing_listener_does_not_block_resolution(self):
        strategy = _embedded()

        def broken(_result):
            raise RuntimeError("listener broke")

        seen = []
        strategy.add_listener(broken)
        strategy.add_listener(seen.append)
        strategy.start()
        self.assertTrue(strategy.cancel())
        self.assertEqual(len(seen), 1)
        self.assertIsNotNone(strategy.wait(0))

    def test_wait_times_out_while_pending(self):
        strategy = _embedded()
        strategy.start()
        self.assertIsNone(strategy.wait(0.01))

    def test_embedded_poll_unsupported(self):
        strategy = _embedded()
        strategy.start()
        with self.assertRaises(UnsupportedOperationError):
            strategy.poll()

    def test_signals_bundle_routes_to_strategy(self):
        strategy = _embedded()
        strategy.start()
        signals = strategy.signals()
        self.assertTrue(signals.on_error("card declined"))
        self.assertFalse(signals.on_cancel())
        self.assertEqual(strategy.result.message, "card declined")

    def test_concurrent_signals_resolve_exactly_once(self):
        for _ in range(20):
            strategy = _embedded()
            strategy.start()
            seen = []
            strategy.add_listener(seen.append)
            barrier = threading.Barrier(3)
            accepted = []

            def fire(fn, *args):
                barrier.wait()
                accepted.append(fn(*args))

            threads = [
                threading.Thread(target=fire, args=(strategy.complete, {"SystemReference": "SR1"})),
                threading.Thread(target=fire, args=(strategy.fail, "declined")),
                threading.Thread(target=fire, args=(strategy.cancel,)),
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join(2)
            self.assertEqual(accepted.count(True), 1)
            self.assertEqual(len(seen), 1)
            self.assertIn(strategy.state, AttemptState.TERMINAL)

    def test_snapshot(self):
        strategy = _embedded()
        strategy.start()
        snap = strategy.snapshot()
        self.assertEqual(snap["delivery"], "embedded")
        self.assertEqual(snap["state"], AttemptState.AWAITING_CONFIRMATION)
        self.assertEqual(snap["handle"]["configuration"], {"OrderId": "R1"})
        self.assertIsNone(snap["result"])


class RedirectStrategyTestCase(unittest.TestCase):
    def test_poll_pending_then_paid(self):
        check = _StatusCheck(
            CompletionRecord(paid=False),
            CompletionRecord(paid=True, system_reference="SR9", paid_through="Wallet"),
        )
        strategy = _redirect(check)
        strategy.start()
        self.assertFalse(strategy.poll())
        self.assertEqual(strategy.state, AttemptState.AWAITING_CONFIRMATION)
        self.assertTrue(strategy.poll())
        self.assertEqual(strategy.result.invoice_id, "INV-1")
        self.assertEqual(strategy.result.external_reference, "SR9")
        self.assertEqual(check.calls, 2)

    def test_poll_after_resolution_skips_status_check(self):
        check = _StatusCheck()
        strategy = _redirect(check)
        strategy.start()
        strategy.cancel()
        self.assertFalse(strategy.poll())
        self.assertEqual(check.calls, 0)

    def test_poll_failure_resolves_error(self):
        strategy = _redirect(_StatusCheck(TransportError("status endpoint down")))
        strategy.start()
        self.assertTrue(strategy.poll())
        self.assertTrue(strategy.result.is_error)
        self.assertTrue(strategy.result.retryable)

    def test_notify_paid_and_unpaid(self):
        strategy = _redirect(_StatusCheck())
        strategy.start()
        self.assertTrue(strategy.notify(b'{"Paid": true, "SystemReference": "SR5"}'))
        self.assertEqual(strategy.result.external_reference, "SR5")

        other = _redirect(_StatusCheck())
        other.start()
        self.assertTrue(other.notify({"Paid": False}))
        self.assertTrue(other.result.is_error)
        self.assertTrue(other.result.retryable)

    def test_notify_with_invalid_payload(self):
        strategy = _redirect(_StatusCheck())
        strategy.start()
        self.assertTrue(strategy.notify(b"garbage"))
        self.assertTrue(strategy.result.is_error)
        self.assertFalse(strategy.result.retryable)

    def test_notify_with_unexpected_parser_failure(self):
        def broken_parser(_payload):
            raise OverflowError("cannot convert Infinity to integer")

        handle = TransactionHandle(invoice_id="INV-1", redirect_url="https://pay.example.com/i/INV-1")
        strategy = RedirectStrategy(
            context=_context(), create=lambda: handle, status_check=_StatusCheck(), parse_completion=broken_parser
        )
        strategy.start()
        self.assertTrue(strategy.notify(b'{"Paid": true}'))
        self.assertEqual(strategy.state, AttemptState.RESOLVED_ERROR)
        self.assertFalse(strategy.result.retryable)


if __name__ == "__main__":
    unittest.main()
