"""In-process collaborators for dry runs and tests.

These stand in for the yield issuer, the hedging venue and stable yield
venues. They hold their own balances but never touch real funds.
"""
from __future__ import annotations

import itertools
import logging

from .config import VaultConfig
from .interfaces.notifier import Notifier
from .models import BPS, AssetClass, HedgeVenuePosition
from .notifications import TelegramNotifier
from .services.valuation import StaticValuation
from .services.vault import DeltaNeutralVault

logger = logging.getLogger(__name__)

SIMULATED_VENUE = "sim-stable"


class SimulatedIssuer:
    """Mints the yield token 1:1 against the underlying, minus an issuance fee."""

    def __init__(
        self,
        token: str,
        underlying: str,
        fee_bps: int = 200,
        apr_bps: int = 0,
        exchange_rate: int = 10**18,
    ) -> None:
        self._token = token
        self._underlying = underlying
        self.fee_bps = fee_bps
        self.apr_bps = apr_bps
        self._exchange_rate = exchange_rate
        self.total_supply = 0

    @property
    def token(self) -> str:
        return self._token

    async def deposit(self, amount: int) -> int:
        minted = amount * (BPS - self.fee_bps) // BPS
        self.total_supply += minted
        return minted

    async def withdraw(self, amount: int) -> int:
        if amount > self.total_supply:
            raise ValueError(f"Cannot redeem {amount}, supply is {self.total_supply}")
        self.total_supply -= amount
        return amount

    async def exchange_rate(self) -> int:
        return self._exchange_rate

    async def current_apr(self) -> int:
        return self.apr_bps

    async def underlying_asset(self) -> str:
        return self._underlying


class SimulatedHedgingVenue:
    """Perp venue that fills ``execution_ratio_bps`` of every request."""

    def __init__(
        self,
        funding_rates: dict[str, int] | None = None,
        execution_ratio_bps: int = BPS,
        leverage: int = 2,
    ) -> None:
        self.funding_rates = dict(funding_rates or {})
        self.execution_ratio_bps = execution_ratio_bps
        self.leverage = leverage
        self.positions: dict[str, dict[str, int | str]] = {}
        self._ids = itertools.count(1)

    def _fill(self, amount: int) -> int:
        return amount * self.execution_ratio_bps // BPS

    async def open_short(
        self, asset: str, amount: int, max_slippage_bps: int
    ) -> tuple[str, int]:
        venue_id = f"sim-{next(self._ids)}"
        executed = self._fill(amount)
        self.positions[venue_id] = {"asset": asset, "size": executed, "collateral": 0}
        logger.debug("Opened %s: short %d %s", venue_id, executed, asset)
        return venue_id, executed

    async def close_short(
        self, venue_position_id: str, amount: int, max_slippage_bps: int
    ) -> tuple[int, int]:
        position = self.positions.get(venue_position_id)
        if position is None:
            raise KeyError(f"Unknown venue position {venue_position_id}")
        closed = min(self._fill(amount), int(position["size"]))
        position["size"] = int(position["size"]) - closed
        if position["size"] == 0:
            del self.positions[venue_position_id]
        return closed, 0

    async def get_position_info(self, venue_position_id: str) -> HedgeVenuePosition:
        position = self.positions[venue_position_id]
        return HedgeVenuePosition(
            asset=str(position["asset"]),
            size=int(position["size"]),
            collateral=int(position["collateral"]),
            leverage=self.leverage,
            liquidation_price=0,
            funding_rate=self.funding_rates.get(str(position["asset"]), 0),
        )

    async def get_funding_rate(self, asset: str) -> int:
        return self.funding_rates.get(asset, 0)

    async def add_collateral(self, venue_position_id: str, amount: int) -> None:
        position = self.positions[venue_position_id]
        position["collateral"] = int(position["collateral"]) + amount

    async def remove_collateral(self, venue_position_id: str, amount: int) -> None:
        position = self.positions[venue_position_id]
        if amount > int(position["collateral"]):
            raise ValueError("Insufficient collateral")
        position["collateral"] = int(position["collateral"]) - amount


class SimulatedStableVenue:
    """Stable yield venue issuing shares 1:1."""

    def __init__(self, apr_bps: int = 0) -> None:
        self.apr_bps = apr_bps
        self.balances: dict[str, int] = {}

    async def deposit(self, asset: str, amount: int) -> int:
        self.balances[asset] = self.balances.get(asset, 0) + amount
        return amount

    async def withdraw(self, asset: str, shares: int) -> int:
        balance = self.balances.get(asset, 0)
        if shares > balance:
            raise ValueError(f"Cannot withdraw {shares}, balance is {balance}")
        self.balances[asset] = balance - shares
        return shares

    async def get_balance(self, asset: str) -> int:
        return self.balances.get(asset, 0)

    async def get_current_apr(self) -> int:
        return self.apr_bps

    async def get_tvl(self) -> int:
        return sum(self.balances.values())


def build_notifiers(config: VaultConfig) -> list[Notifier]:
    notifiers: list[Notifier] = []
    if config.notifications.telegram.enabled:
        notifiers.append(TelegramNotifier(config.notifications.telegram))
    return notifiers


def build_simulated_vault(config: VaultConfig) -> DeltaNeutralVault:
    """Wire a vault to simulated collaborators using ``config``."""
    sim = config.simulation
    issuers = {
        asset_class: SimulatedIssuer(
            token=config.yield_tokens[asset_class],
            underlying=config.hedge_assets.get(asset_class, "USDC"),
            fee_bps=sim.issuance_fee_bps,
            apr_bps=sim.yield_apr_bps.get(asset_class.value, 0),
        )
        for asset_class in AssetClass
    }
    venue = SimulatedHedgingVenue(
        funding_rates={asset: sim.funding_rate for asset in config.hedge_assets.values()},
        execution_ratio_bps=sim.execution_ratio_bps,
    )
    venue_ids = config.stable_venues or (SIMULATED_VENUE,)
    stable_venues = {
        venue_id: SimulatedStableVenue(apr_bps=sim.stable_venue_apr_bps)
        for venue_id in venue_ids
    }
    return DeltaNeutralVault(
        owner=config.owner,
        valuation=StaticValuation(config.assets),
        issuers=issuers,
        hedging_venue=venue,
        hedge_assets=config.hedge_assets,
        policy=config.policy.to_policy(),
        stable_venues=stable_venues,
        notifiers=build_notifiers(config),
    )
