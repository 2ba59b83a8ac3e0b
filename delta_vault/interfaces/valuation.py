"""Valuation protocol — asset amount <-> USD conversion."""
from typing import Protocol

from ..models import AssetClass


class Valuation(Protocol):
    """Pure conversion between token amounts and USD (1e18-scaled)."""

    def value_of(self, asset: str, amount: int) -> int: ...

    def amount_for(self, asset: str, usd_value: int) -> int: ...

    def asset_class_of(self, asset: str) -> AssetClass | None: ...
