"""Data models for the position ledger and its derived views."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

BPS = 10_000
FUNDING_SCALE = 1_000_000
USD_DECIMALS = 18


class AssetClass(str, Enum):
    ETH = "ETH"
    BTC = "BTC"
    USD = "USD"


HEDGED_CLASSES: tuple[AssetClass, ...] = (AssetClass.ETH, AssetClass.BTC)


@dataclass(frozen=True)
class YieldPosition:
    """Capital placed into a yield-bearing asset. Value is a creation-time snapshot."""

    asset: str
    amount: int
    value: int
    asset_class: AssetClass


@dataclass(frozen=True)
class StablePosition:
    """Stable yield-bearing capital deployed into an external venue."""

    asset: str
    amount: int
    value: int
    venue: str


class HedgePosition:
    """Open short position offsetting exposure.

    ``amount`` and ``value`` cannot be set independently: assigning
    ``amount`` re-prices the position through the bound valuation function.
    """

    __slots__ = ("position_id", "asset", "is_short", "funding_rate", "venue_ref", "_pricer", "_amount", "_value")

    def __init__(
        self,
        position_id: int,
        asset: str,
        amount: int,
        pricer: Callable[[str, int], int],
        funding_rate: int = 0,
        is_short: bool = True,
        venue_ref: str | None = None,
    ) -> None:
        self.position_id = position_id
        self.asset = asset
        self.is_short = is_short
        self.funding_rate = funding_rate
        self.venue_ref = venue_ref
        self._pricer = pricer
        self._amount = 0
        self._value = 0
        self.amount = amount

    @property
    def amount(self) -> int:
        return self._amount

    @amount.setter
    def amount(self, new_amount: int) -> None:
        if new_amount < 0:
            raise ValueError(f"Hedge amount cannot be negative: {new_amount}")
        self._amount = new_amount
        self._value = self._pricer(self.asset, new_amount)

    @property
    def value(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return (
            f"HedgePosition(id={self.position_id}, asset={self.asset!r}, "
            f"amount={self._amount}, value={self._value}, short={self.is_short})"
        )


@dataclass(frozen=True)
class PortfolioSummary:
    """Fold of one participant's ledger. Hedges never count toward ``total_value``."""

    total_value: int = 0
    eth_exposure: int = 0
    btc_exposure: int = 0
    usd_exposure: int = 0

    def exposure(self, asset_class: AssetClass) -> int:
        if asset_class is AssetClass.ETH:
            return self.eth_exposure
        if asset_class is AssetClass.BTC:
            return self.btc_exposure
        return self.usd_exposure


@dataclass(frozen=True)
class AllocationPolicy:
    """Target allocation in bps plus rebalance threshold and slippage cap."""

    eth_target_bps: int = 3000
    btc_target_bps: int = 3000
    usd_target_bps: int = 4000
    rebalance_threshold_bps: int = 500
    max_slippage_bps: int = 50

    def target(self, asset_class: AssetClass) -> int:
        if asset_class is AssetClass.ETH:
            return self.eth_target_bps
        if asset_class is AssetClass.BTC:
            return self.btc_target_bps
        return self.usd_target_bps


@dataclass(frozen=True)
class HedgeVenuePosition:
    """Position info as reported by the hedging venue."""

    asset: str
    size: int
    collateral: int
    leverage: int
    liquidation_price: int
    funding_rate: int


@dataclass(frozen=True)
class ReductionResult:
    """Outcome of a hedge reduction. ``unmet_usd`` > 0 means positions ran out."""

    requested_usd: int
    reduced_usd: int
    closed_ids: tuple[int, ...] = ()

    @property
    def unmet_usd(self) -> int:
        return self.requested_usd - self.reduced_usd


@dataclass(frozen=True)
class ClassAdjustment:
    """Per-class rebalance action: ``"open"``, ``"reduce"`` or ``"none"``."""

    asset_class: AssetClass
    action: str
    adjustment_usd: int = 0
    position_id: int | None = None
    reduction: ReductionResult | None = None


@dataclass(frozen=True)
class RebalanceReport:
    before: PortfolioSummary
    after: PortfolioSummary
    adjustments: tuple[ClassAdjustment, ...] = field(default_factory=tuple)

    @property
    def acted(self) -> bool:
        return any(a.action != "none" for a in self.adjustments)
