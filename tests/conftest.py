"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from delta_vault.config import (
    DEFAULT_HEDGE_ASSETS,
    AssetConfig,
    PolicyConfig,
    SimulationConfig,
    VaultConfig,
)
from delta_vault.models import AllocationPolicy, AssetClass
from delta_vault.services.ledger import PositionLedger
from delta_vault.services.valuation import StaticValuation
from delta_vault.services.vault import DeltaNeutralVault
from delta_vault.simulated import (
    SimulatedHedgingVenue,
    SimulatedIssuer,
    SimulatedStableVenue,
)

E18 = 10**18
OWNER = "ops"
ALICE = "alice"
BOB = "bob"


# ---------------------------------------------------------------------------
# Valuation fixtures
# ---------------------------------------------------------------------------

# Every asset priced at $1 so USD values equal token amounts.
UNIT_ASSETS = {
    "ETH": AssetConfig(AssetClass.ETH, E18),
    "BTC": AssetConfig(AssetClass.BTC, E18),
    "USDC": AssetConfig(AssetClass.USD, E18),
    "yETH": AssetConfig(AssetClass.ETH, E18),
    "yBTC": AssetConfig(AssetClass.BTC, E18),
    "yUSD": AssetConfig(AssetClass.USD, E18),
}


@pytest.fixture()
def market_valuation() -> StaticValuation:
    """ETH $3000, BTC $60000, stables $1 — all 18 decimals."""
    return StaticValuation(VaultConfig(owner=OWNER).assets)


@pytest.fixture()
def unit_valuation() -> StaticValuation:
    return StaticValuation(UNIT_ASSETS)


@pytest.fixture()
def unit_ledger(unit_valuation: StaticValuation) -> PositionLedger:
    return PositionLedger(unit_valuation)


# ---------------------------------------------------------------------------
# Collaborator fixtures
# ---------------------------------------------------------------------------


def make_issuers(fee_bps: int = 200, aprs: dict[AssetClass, int] | None = None):
    aprs = aprs or {}
    return {
        AssetClass.ETH: SimulatedIssuer("yETH", "ETH", fee_bps, aprs.get(AssetClass.ETH, 0)),
        AssetClass.BTC: SimulatedIssuer("yBTC", "BTC", fee_bps, aprs.get(AssetClass.BTC, 0)),
        AssetClass.USD: SimulatedIssuer("yUSD", "USDC", fee_bps, aprs.get(AssetClass.USD, 0)),
    }


@pytest.fixture()
def hedging_venue() -> SimulatedHedgingVenue:
    return SimulatedHedgingVenue()


@pytest.fixture()
def stable_venue() -> SimulatedStableVenue:
    return SimulatedStableVenue(apr_bps=1000)


@pytest.fixture()
def vault(
    market_valuation: StaticValuation,
    hedging_venue: SimulatedHedgingVenue,
    stable_venue: SimulatedStableVenue,
) -> DeltaNeutralVault:
    """Vault with a 2% issuance fee and real-looking prices."""
    return DeltaNeutralVault(
        owner=OWNER,
        valuation=market_valuation,
        issuers=make_issuers(fee_bps=200),
        hedging_venue=hedging_venue,
        hedge_assets=DEFAULT_HEDGE_ASSETS,
        stable_venues={"aave": stable_venue},
    )


@pytest.fixture()
def unit_vault(
    unit_valuation: StaticValuation,
    hedging_venue: SimulatedHedgingVenue,
    stable_venue: SimulatedStableVenue,
) -> DeltaNeutralVault:
    """Fee-free vault where every asset is worth $1."""
    return DeltaNeutralVault(
        owner=OWNER,
        valuation=unit_valuation,
        issuers=make_issuers(fee_bps=0),
        hedging_venue=hedging_venue,
        hedge_assets=DEFAULT_HEDGE_ASSETS,
        policy=AllocationPolicy(),
        stable_venues={"aave": stable_venue},
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_config() -> VaultConfig:
    return VaultConfig(
        owner=OWNER,
        policy=PolicyConfig(),
        stable_venues=("aave",),
        simulation=SimulationConfig(
            issuance_fee_bps=200,
            yield_apr_bps={"ETH": 350, "BTC": 150, "USD": 800},
            stable_venue_apr_bps=600,
        ),
    )


SAMPLE_YAML = textwrap.dedent("""\
    owner: ops
    policy:
      eth_target_bps: 2500
      btc_target_bps: 2500
      usd_target_bps: 5000
      rebalance_threshold_bps: 300
      max_slippage_bps: 30
    assets:
      ETH:  {class: ETH, price: 3000}
      BTC:  {class: BTC, price: 60000, decimals: 8}
      USDC: {class: USD, price: 1, decimals: 6}
      yETH: {class: ETH, price: 3000}
      yBTC: {class: BTC, price: 60000, decimals: 8}
      yUSD: {class: USD, price: 1, decimals: 6}
    yield_tokens: {ETH: yETH, BTC: yBTC, USD: yUSD}
    hedge_assets: {ETH: ETH, BTC: BTC}
    stable_venues: [aave, morpho]
    simulation:
      issuance_fee_bps: 100
      yield_apr_bps: {ETH: 350}
      funding_rate: -200
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: "999"
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
