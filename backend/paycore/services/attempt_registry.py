from __future__ import annotations

import threading
from collections import OrderedDict

from paycore.integrations.payments.strategy import ExecutionStrategy


class AttemptRegistry:
    """Live attempts keyed by merchant reference.

    A reference is reserved before the gateway is contacted so two concurrent
    confirmations cannot both start. Resolved attempts move to a bounded
    history so their result can still be read back.
    """

    def __init__(self, *, keep_resolved: int = 500):
        self._lock = threading.Lock()
        self._live: dict[str, ExecutionStrategy | None] = {}
        self._resolved: OrderedDict[str, ExecutionStrategy] = OrderedDict()
        self._keep_resolved = max(0, int(keep_resolved))

    def reserve(self, ref: str) -> bool:
        with self._lock:
            if ref in self._live:
                return False
            self._live[ref] = None
            return True

    def attach(self, ref: str, strategy: ExecutionStrategy) -> None:
        with self._lock:
            self._live[ref] = strategy
        strategy.add_listener(lambda _result: self._retire(ref, strategy))

    def release(self, ref: str) -> None:
        with self._lock:
            if ref in self._live and self._live[ref] is None:
                del self._live[ref]

    def get(self, ref: str) -> ExecutionStrategy | None:
        with self._lock:
            return self._live.get(ref) or self._resolved.get(ref)

    def live_count(self) -> int:
        with self._lock:
            return len(self._live)

    def _retire(self, ref: str, strategy: ExecutionStrategy) -> None:
        with self._lock:
            if self._live.get(ref) is strategy:
                del self._live[ref]
            self._resolved[ref] = strategy
            self._resolved.move_to_end(ref)
            while len(self._resolved) > self._keep_resolved:
                self._resolved.popitem(last=False)
