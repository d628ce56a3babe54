from __future__ import annotations

from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Iterable, Iterator


@dataclass(frozen=True)
class GatewayDescriptor:
    id: str
    provider: str
    method: str
    display_name: str = ""
    description: str = ""
    sort_order: int = 0
    enabled: bool = True

    @property
    def pair(self) -> tuple[str, str]:
        return (self.provider, self.method)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "provider": self.provider,
            "method": self.method,
            "display_name": self.display_name,
            "description": self.description,
            "sort_order": int(self.sort_order),
            "enabled": bool(self.enabled),
        }


class GatewayCatalog:
    """Read-only table of gateway descriptors, built once at startup."""

    def __init__(self, descriptors: Iterable[GatewayDescriptor]):
        items = tuple(descriptors)
        by_id: dict[str, GatewayDescriptor] = {}
        by_pair: dict[tuple[str, str], GatewayDescriptor] = {}
        for d in items:
            if d.id in by_id:
                raise ValueError(f"duplicate gateway id: {d.id}")
            if d.pair in by_pair:
                raise ValueError(f"duplicate gateway pair: {d.provider}/{d.method}")
            by_id[d.id] = d
            by_pair[d.pair] = d
        self._items = items
        self._by_id = MappingProxyType(by_id)
        self._by_pair = MappingProxyType(by_pair)

    def __iter__(self) -> Iterator[GatewayDescriptor]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, gateway_id: str) -> GatewayDescriptor | None:
        return self._by_id.get(gateway_id)

    def lookup(self, provider: str, method: str) -> GatewayDescriptor | None:
        return self._by_pair.get((provider, method))

    def enabled(self) -> list[GatewayDescriptor]:
        return sorted((d for d in self._items if d.enabled), key=lambda d: (d.sort_order, d.id))


DEFAULT_DESCRIPTORS = (
    GatewayDescriptor(
        id="hosted-card",
        provider="hosted",
        method="card",
        display_name="Card",
        description="Pay by card on the provider's hosted checkout page",
        sort_order=10,
    ),
    GatewayDescriptor(
        id="lightbox-card",
        provider="lightbox",
        method="card",
        display_name="Card (Lightbox)",
        description="Pay by card without leaving the app",
        sort_order=20,
    ),
    GatewayDescriptor(
        id="lightbox-wallet",
        provider="lightbox",
        method="wallet",
        display_name="Mobile wallet",
        description="Pay from a mobile wallet without leaving the app",
        sort_order=30,
    ),
)

SANDBOX_DESCRIPTORS = (
    GatewayDescriptor(id="mock-card", provider="mock", method="card", display_name="Sandbox card", sort_order=90),
    GatewayDescriptor(id="mock-wallet", provider="mock", method="wallet", display_name="Sandbox wallet", sort_order=91),
)


def build_catalog(settings) -> GatewayCatalog:
    mode = (getattr(settings, "mode", "sandbox") or "sandbox").strip().lower()
    disabled = set(getattr(settings, "disabled_gateways", ()) or ())
    descriptors = list(DEFAULT_DESCRIPTORS)
    if mode == "sandbox":
        descriptors.extend(SANDBOX_DESCRIPTORS)
    return GatewayCatalog(replace(d, enabled=False) if d.id in disabled else d for d in descriptors)
