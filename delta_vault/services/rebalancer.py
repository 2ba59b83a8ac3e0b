"""Rebalance engine — deviation detection and corrective hedging.

The engine is level-triggered: every call re-reads the ledger and corrects
toward the current policy. It keeps no memory of earlier rebalances.
"""
from __future__ import annotations

import logging
from typing import Mapping

from ..errors import CollaboratorError
from ..interfaces.hedging_venue import HedgingVenue
from ..models import (
    BPS,
    HEDGED_CLASSES,
    AllocationPolicy,
    AssetClass,
    ClassAdjustment,
    HedgePosition,
    RebalanceReport,
    ReductionResult,
)
from .exposure import ExposureCalculator, deviations_bps
from .ledger import PositionLedger
from .valuation import mul_div

logger = logging.getLogger(__name__)


class RebalanceEngine:
    def __init__(
        self,
        ledger: PositionLedger,
        exposure: ExposureCalculator,
        hedge_assets: Mapping[AssetClass, str],
    ) -> None:
        self._ledger = ledger
        self._exposure = exposure
        self._hedge_assets = dict(hedge_assets)

    def hedge_asset(self, asset_class: AssetClass) -> str:
        return self._hedge_assets[asset_class]

    def needs_rebalancing(self, participant: str, policy: AllocationPolicy) -> bool:
        summary = self._exposure.summary(participant)
        if summary.total_value == 0:
            return False
        deviations = deviations_bps(summary, policy)
        return any(d > policy.rebalance_threshold_bps for d in deviations.values())

    async def open_hedge(
        self,
        participant: str,
        venue: HedgingVenue,
        asset: str,
        amount: int,
        max_slippage_bps: int,
    ) -> int:
        """Open a short on the venue and record it. Returns the ledger id."""
        self._ledger.check_hedgeable(asset, amount)
        venue_ref, executed = await venue.open_short(asset, amount, max_slippage_bps)
        if executed <= 0:
            raise CollaboratorError(
                "Hedging venue executed nothing",
                {"asset": asset, "requested": amount},
            )
        funding_rate = await venue.get_funding_rate(asset)
        return self._ledger.record_hedge_open(
            participant, asset, executed, funding_rate, venue_ref=venue_ref
        )

    async def reduce_hedges(
        self,
        participant: str,
        venue: HedgingVenue,
        asset_class: AssetClass,
        usd_to_reduce: int,
        max_slippage_bps: int,
    ) -> ReductionResult:
        async def close(position: HedgePosition, amount: int) -> int:
            if position.venue_ref is None:
                return amount
            closed, pnl = await venue.close_short(position.venue_ref, amount, max_slippage_bps)
            logger.debug(
                "Closed %d of hedge %d (requested %d, pnl %d)",
                closed, position.position_id, amount, pnl,
            )
            return closed

        result = await self._ledger.reduce_hedges(participant, asset_class, usd_to_reduce, close)
        if result.unmet_usd > 0:
            logger.warning(
                "Hedge reduction for %s/%s left %d USD(1e18) unmet",
                participant, asset_class.value, result.unmet_usd,
            )
        return result

    async def rebalance(
        self, participant: str, policy: AllocationPolicy, venue: HedgingVenue
    ) -> RebalanceReport:
        before = self._exposure.summary(participant)
        if before.total_value == 0:
            logger.info("Nothing to rebalance for %s (empty portfolio)", participant)
            return RebalanceReport(before=before, after=before)

        adjustments: list[ClassAdjustment] = []
        for asset_class in HEDGED_CLASSES:
            target_value = mul_div(before.total_value, policy.target(asset_class), BPS)
            adjustment = target_value - before.exposure(asset_class)

            if adjustment < 0:
                asset = self.hedge_asset(asset_class)
                amount = self._ledger.valuation.amount_for(asset, -adjustment)
                if amount == 0:
                    adjustments.append(ClassAdjustment(asset_class, "none", adjustment))
                    continue
                position_id = await self.open_hedge(
                    participant, venue, asset, amount, policy.max_slippage_bps
                )
                adjustments.append(
                    ClassAdjustment(asset_class, "open", adjustment, position_id=position_id)
                )
            elif adjustment > 0:
                reduction = await self.reduce_hedges(
                    participant, venue, asset_class, adjustment, policy.max_slippage_bps
                )
                adjustments.append(
                    ClassAdjustment(asset_class, "reduce", adjustment, reduction=reduction)
                )
            else:
                adjustments.append(ClassAdjustment(asset_class, "none"))

        after = self._exposure.summary(participant)
        logger.info(
            "Rebalanced %s: ETH %d -> %d, BTC %d -> %d",
            participant,
            before.eth_exposure, after.eth_exposure,
            before.btc_exposure, after.btc_exposure,
        )
        return RebalanceReport(before=before, after=after, adjustments=tuple(adjustments))
