"""Unit tests for exposure folding and allocation maths."""
from __future__ import annotations

import itertools

from delta_vault.models import AllocationPolicy, AssetClass, PortfolioSummary
from delta_vault.services.exposure import ExposureCalculator, allocation_bps, deviations_bps
from delta_vault.services.ledger import PositionLedger

ALICE = "alice"


class TestSummary:
    def test_empty_ledger(self, unit_ledger: PositionLedger) -> None:
        assert ExposureCalculator(unit_ledger).summary(ALICE) == PortfolioSummary()

    def test_folds_all_position_types(self, unit_ledger: PositionLedger) -> None:
        unit_ledger.record_yield_deposit(ALICE, AssetClass.ETH, "yETH", 1000)
        unit_ledger.record_yield_deposit(ALICE, AssetClass.BTC, "yBTC", 500)
        unit_ledger.record_yield_deposit(ALICE, AssetClass.USD, "yUSD", 300)
        unit_ledger.record_stable_deploy(ALICE, "aave", "yUSD", 200, approved=True)
        unit_ledger.record_hedge_open(ALICE, "ETH", 900, 0)
        unit_ledger.record_hedge_open(ALICE, "BTC", 700, 0)

        summary = ExposureCalculator(unit_ledger).summary(ALICE)

        assert summary.eth_exposure == 100
        assert summary.btc_exposure == -200
        assert summary.usd_exposure == 500
        # hedges never count toward total value
        assert summary.total_value == 2000

    def test_exposure_is_order_independent(self, unit_ledger: PositionLedger) -> None:
        operations = [
            lambda lg: lg.record_yield_deposit(ALICE, AssetClass.ETH, "yETH", 700),
            lambda lg: lg.record_hedge_open(ALICE, "ETH", 250, 0),
            lambda lg: lg.record_yield_deposit(ALICE, AssetClass.ETH, "yETH", 40),
            lambda lg: lg.record_hedge_open(ALICE, "ETH", 90, 0),
        ]
        results = set()
        for order in itertools.permutations(operations):
            ledger = PositionLedger(unit_ledger.valuation)
            for op in order:
                op(ledger)
            results.add(ExposureCalculator(ledger).summary(ALICE).eth_exposure)
        assert results == {700 + 40 - 250 - 90}


class TestAllocation:
    def test_zero_total(self) -> None:
        assert allocation_bps(PortfolioSummary(), AssetClass.ETH) == 0

    def test_net_short_floors_to_zero(self) -> None:
        summary = PortfolioSummary(total_value=1000, eth_exposure=-100, usd_exposure=1000)
        assert allocation_bps(summary, AssetClass.ETH) == 0

    def test_usd_unfloored(self) -> None:
        summary = PortfolioSummary(total_value=1000, usd_exposure=250)
        assert allocation_bps(summary, AssetClass.USD) == 2500

    def test_deviations(self) -> None:
        summary = PortfolioSummary(
            total_value=1000, eth_exposure=500, btc_exposure=300, usd_exposure=200
        )
        deviations = deviations_bps(summary, AllocationPolicy())
        assert deviations == {
            AssetClass.ETH: 2000,
            AssetClass.BTC: 0,
            AssetClass.USD: 2000,
        }
