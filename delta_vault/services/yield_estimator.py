"""Yield/funding estimator — annualised yield net of hedge funding, in bps."""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Mapping

from ..interfaces.issuer import YieldIssuer
from ..models import BPS, FUNDING_SCALE
from .exposure import ExposureCalculator
from .ledger import PositionLedger
from .valuation import mul_div

logger = logging.getLogger(__name__)


class YieldEstimator:
    """Value-weighted APR of yield-token holdings, net of hedge funding.

    Only yield tokens earn; stable-venue deployments count toward the
    portfolio value and so dilute the estimate. Funding on a short is
    credited when the rate is positive and charged when negative. The
    running yield total is floored at zero after each charge.
    """

    def __init__(
        self,
        ledger: PositionLedger,
        exposure: ExposureCalculator,
        issuers: Mapping[str, YieldIssuer],
    ) -> None:
        self._ledger = ledger
        self._exposure = exposure
        self._issuers = dict(issuers)

    async def estimated_apr_bps(self, participant: str) -> int:
        summary = self._exposure.summary(participant)
        if summary.total_value == 0:
            return 0

        held: dict[str, int] = defaultdict(int)
        for position in self._ledger.yield_positions(participant):
            held[position.asset] += position.value

        total_yield = 0
        for asset, value in held.items():
            issuer = self._issuers.get(asset)
            if issuer is None:
                logger.warning("No issuer registered for yield asset '%s'", asset)
                continue
            total_yield += mul_div(value, await issuer.current_apr(), BPS)

        for hedge in self._ledger.hedge_positions(participant):
            total_yield += mul_div(hedge.funding_rate, hedge.value, FUNDING_SCALE)
            total_yield = max(total_yield, 0)

        return mul_div(total_yield, BPS, summary.total_value)
