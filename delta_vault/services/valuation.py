"""Static-rate valuation service.

Converts between token base units and USD (scaled 1e18) using a fixed rate
table. Any object satisfying ``interfaces.Valuation`` can replace it, e.g.
one backed by a live price feed.
"""
from __future__ import annotations

import logging
from typing import Mapping

from ..config import AssetConfig
from ..models import AssetClass

logger = logging.getLogger(__name__)


def mul_div(a: int, b: int, d: int) -> int:
    """``a * b / d`` rounded toward zero."""
    if d == 0:
        raise ZeroDivisionError("mul_div by zero")
    n = a * b
    q = abs(n) // abs(d)
    return q if (n >= 0) == (d > 0) else -q


class StaticValuation:
    """Fixed conversion rates keyed by asset symbol."""

    def __init__(self, assets: Mapping[str, AssetConfig]) -> None:
        self._assets = dict(assets)

    @property
    def assets(self) -> dict[str, AssetConfig]:
        return dict(self._assets)

    def asset_class_of(self, asset: str) -> AssetClass | None:
        entry = self._assets.get(asset)
        return entry.asset_class if entry else None

    def value_of(self, asset: str, amount: int) -> int:
        """USD value of ``amount`` base units. Unknown assets value at 0."""
        entry = self._assets.get(asset)
        if entry is None:
            logger.debug("No rate for asset '%s', valuing at 0", asset)
            return 0
        return mul_div(amount, entry.price, 10**entry.decimals)

    def amount_for(self, asset: str, usd_value: int) -> int:
        """Base units worth ``usd_value``. Unknown or zero-priced assets give 0."""
        entry = self._assets.get(asset)
        if entry is None or entry.price == 0:
            return 0
        return mul_div(usd_value, 10**entry.decimals, entry.price)
