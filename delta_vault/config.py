"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import BPS, HEDGED_CLASSES, USD_DECIMALS, AllocationPolicy, AssetClass

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicyConfig:
    eth_target_bps: int = 3000
    btc_target_bps: int = 3000
    usd_target_bps: int = 4000
    rebalance_threshold_bps: int = 500
    max_slippage_bps: int = 50

    def to_policy(self) -> AllocationPolicy:
        return AllocationPolicy(
            eth_target_bps=self.eth_target_bps,
            btc_target_bps=self.btc_target_bps,
            usd_target_bps=self.usd_target_bps,
            rebalance_threshold_bps=self.rebalance_threshold_bps,
            max_slippage_bps=self.max_slippage_bps,
        )


@dataclass(frozen=True)
class AssetConfig:
    """Static rate-table entry. ``price`` is USD per whole token, scaled 1e18."""

    asset_class: AssetClass = AssetClass.USD
    price: int = 10**USD_DECIMALS
    decimals: int = 18


@dataclass(frozen=True)
class SimulationConfig:
    issuance_fee_bps: int = 200
    yield_apr_bps: dict[str, int] = field(default_factory=dict)
    stable_venue_apr_bps: int = 500
    funding_rate: int = 0
    execution_ratio_bps: int = BPS


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


DEFAULT_ASSETS: dict[str, AssetConfig] = {
    "ETH": AssetConfig(AssetClass.ETH, 3000 * 10**USD_DECIMALS),
    "BTC": AssetConfig(AssetClass.BTC, 60000 * 10**USD_DECIMALS),
    "USDC": AssetConfig(AssetClass.USD, 10**USD_DECIMALS),
    "yETH": AssetConfig(AssetClass.ETH, 3000 * 10**USD_DECIMALS),
    "yBTC": AssetConfig(AssetClass.BTC, 60000 * 10**USD_DECIMALS),
    "yUSD": AssetConfig(AssetClass.USD, 10**USD_DECIMALS),
}

DEFAULT_YIELD_TOKENS: dict[AssetClass, str] = {
    AssetClass.ETH: "yETH",
    AssetClass.BTC: "yBTC",
    AssetClass.USD: "yUSD",
}

DEFAULT_HEDGE_ASSETS: dict[AssetClass, str] = {
    AssetClass.ETH: "ETH",
    AssetClass.BTC: "BTC",
}


@dataclass(frozen=True)
class VaultConfig:
    owner: str = ""
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    assets: dict[str, AssetConfig] = field(default_factory=lambda: dict(DEFAULT_ASSETS))
    yield_tokens: dict[AssetClass, str] = field(
        default_factory=lambda: dict(DEFAULT_YIELD_TOKENS)
    )
    hedge_assets: dict[AssetClass, str] = field(
        default_factory=lambda: dict(DEFAULT_HEDGE_ASSETS)
    )
    stable_venues: tuple[str, ...] = ()
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _parse_asset_class(raw: Any) -> AssetClass:
    try:
        return AssetClass(str(raw).upper())
    except ValueError:
        raise ValueError(f"Unknown asset class '{raw}'") from None


def _scale_price(raw: Any) -> int:
    """Convert a human price ("3000", 0.9995) to USD scaled by 1e18."""
    try:
        price = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(f"Invalid price '{raw}'") from None
    return int(price * 10**USD_DECIMALS)


def _build_policy(raw: dict[str, Any]) -> PolicyConfig:
    return PolicyConfig(
        eth_target_bps=int(raw.get("eth_target_bps", 3000)),
        btc_target_bps=int(raw.get("btc_target_bps", 3000)),
        usd_target_bps=int(raw.get("usd_target_bps", 4000)),
        rebalance_threshold_bps=int(raw.get("rebalance_threshold_bps", 500)),
        max_slippage_bps=int(raw.get("max_slippage_bps", 50)),
    )


def _build_assets(raw: dict[str, Any]) -> dict[str, AssetConfig]:
    if not raw:
        return dict(DEFAULT_ASSETS)
    assets: dict[str, AssetConfig] = {}
    for symbol, cfg in raw.items():
        assets[symbol] = AssetConfig(
            asset_class=_parse_asset_class(cfg.get("class", "USD")),
            price=_scale_price(cfg.get("price", 1)),
            decimals=int(cfg.get("decimals", 18)),
        )
    return assets


def _build_class_map(
    raw: dict[str, Any], default: dict[AssetClass, str]
) -> dict[AssetClass, str]:
    if not raw:
        return dict(default)
    return {_parse_asset_class(k): str(v) for k, v in raw.items()}


def _build_simulation(raw: dict[str, Any]) -> SimulationConfig:
    return SimulationConfig(
        issuance_fee_bps=int(raw.get("issuance_fee_bps", 200)),
        yield_apr_bps={k: int(v) for k, v in raw.get("yield_apr_bps", {}).items()},
        stable_venue_apr_bps=int(raw.get("stable_venue_apr_bps", 500)),
        funding_rate=int(raw.get("funding_rate", 0)),
        execution_ratio_bps=int(raw.get("execution_ratio_bps", BPS)),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> VaultConfig:
    """Load and validate vault configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = VaultConfig(
        owner=str(raw.get("owner", "")),
        policy=_build_policy(raw.get("policy", {})),
        assets=_build_assets(raw.get("assets", {})),
        yield_tokens=_build_class_map(raw.get("yield_tokens", {}), DEFAULT_YIELD_TOKENS),
        hedge_assets=_build_class_map(raw.get("hedge_assets", {}), DEFAULT_HEDGE_ASSETS),
        stable_venues=tuple(raw.get("stable_venues", [])),
        simulation=_build_simulation(raw.get("simulation", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
    )

    validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def validate(cfg: VaultConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.owner:
        raise ValueError("An owner must be configured")

    p = cfg.policy
    if p.eth_target_bps + p.btc_target_bps + p.usd_target_bps != BPS:
        raise ValueError(
            f"Target allocations must sum to {BPS} bps, got "
            f"{p.eth_target_bps + p.btc_target_bps + p.usd_target_bps}"
        )

    for asset_class in AssetClass:
        token = cfg.yield_tokens.get(asset_class)
        if not token:
            raise ValueError(f"No yield token configured for class {asset_class.value}")
        entry = cfg.assets.get(token)
        if entry is None:
            raise ValueError(f"Yield token '{token}' has no asset entry")
        if entry.asset_class is not asset_class:
            raise ValueError(
                f"Yield token '{token}' is class {entry.asset_class.value}, "
                f"expected {asset_class.value}"
            )

    for asset_class, asset in cfg.hedge_assets.items():
        if asset_class is AssetClass.USD:
            raise ValueError("USD class cannot have a hedge asset")
        entry = cfg.assets.get(asset)
        if entry is None:
            raise ValueError(f"Hedge asset '{asset}' has no asset entry")
        if entry.asset_class is not asset_class:
            raise ValueError(
                f"Hedge asset '{asset}' is class {entry.asset_class.value}, "
                f"expected {asset_class.value}"
            )
    for asset_class in HEDGED_CLASSES:
        if asset_class not in cfg.hedge_assets:
            raise ValueError(f"No hedge asset configured for class {asset_class.value}")
