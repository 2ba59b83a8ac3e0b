"""Exposure calculator — folds the ledger into a portfolio summary."""
from __future__ import annotations

from ..models import BPS, AllocationPolicy, AssetClass, PortfolioSummary
from .ledger import PositionLedger
from .valuation import mul_div


class ExposureCalculator:
    """Computes a fresh summary on every call; nothing is cached."""

    def __init__(self, ledger: PositionLedger) -> None:
        self._ledger = ledger

    def summary(self, participant: str) -> PortfolioSummary:
        long_value = {cls: 0 for cls in AssetClass}
        for position in self._ledger.yield_positions(participant):
            long_value[position.asset_class] += position.value

        stable_value = sum(p.value for p in self._ledger.stable_positions(participant))

        hedge_value = {cls: 0 for cls in AssetClass}
        valuation = self._ledger.valuation
        for hedge in self._ledger.hedge_positions(participant):
            asset_class = valuation.asset_class_of(hedge.asset)
            if asset_class is not None:
                hedge_value[asset_class] += hedge.value

        return PortfolioSummary(
            total_value=sum(long_value.values()) + stable_value,
            eth_exposure=long_value[AssetClass.ETH] - hedge_value[AssetClass.ETH],
            btc_exposure=long_value[AssetClass.BTC] - hedge_value[AssetClass.BTC],
            usd_exposure=long_value[AssetClass.USD] + stable_value,
        )


def allocation_bps(summary: PortfolioSummary, asset_class: AssetClass) -> int:
    """Current allocation of ``asset_class``. Net-short ETH/BTC count as 0%."""
    if summary.total_value == 0:
        return 0
    exposure = summary.exposure(asset_class)
    if asset_class is not AssetClass.USD:
        exposure = max(exposure, 0)
    return mul_div(exposure, BPS, summary.total_value)


def deviations_bps(
    summary: PortfolioSummary, policy: AllocationPolicy
) -> dict[AssetClass, int]:
    """Absolute distance from target, per class."""
    return {
        cls: abs(allocation_bps(summary, cls) - policy.target(cls)) for cls in AssetClass
    }
