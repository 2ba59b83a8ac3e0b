"""Unit tests for config loading, env interpolation, and validation."""
from __future__ import annotations

from pathlib import Path

import pytest

from delta_vault.config import (
    AssetConfig,
    PolicyConfig,
    VaultConfig,
    _interpolate_env,
    _scale_price,
    load_config,
    validate,
)
from delta_vault.models import AssetClass

E18 = 10**18


class TestInterpolateEnv:
    def test_simple_substitution(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_VAR", "hello")
        assert _interpolate_env("${MY_VAR}") == "hello"

    def test_missing_var_becomes_empty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NONEXISTENT_VAR_XYZ", raising=False)
        assert _interpolate_env("${NONEXISTENT_VAR_XYZ}") == ""

    def test_nested(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TOK", "secret")
        result = _interpolate_env({"key": ["${TOK}", "plain"], "n": 3})
        assert result == {"key": ["secret", "plain"], "n": 3}


class TestScalePrice:
    def test_integer(self) -> None:
        assert _scale_price(3000) == 3000 * E18

    def test_fractional_string(self) -> None:
        assert _scale_price("0.9995") == 9995 * 10**14

    def test_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid price"):
            _scale_price("cheap")


class TestLoadConfig:
    def test_loads_valid_yaml(self, sample_yaml_path: Path) -> None:
        cfg = load_config(sample_yaml_path)
        assert isinstance(cfg, VaultConfig)
        assert cfg.owner == "ops"
        assert cfg.policy.eth_target_bps == 2500
        assert cfg.policy.rebalance_threshold_bps == 300
        assert cfg.assets["BTC"] == AssetConfig(AssetClass.BTC, 60000 * E18, 8)
        assert cfg.yield_tokens[AssetClass.USD] == "yUSD"
        assert cfg.hedge_assets[AssetClass.ETH] == "ETH"
        assert cfg.stable_venues == ("aave", "morpho")
        assert cfg.simulation.issuance_fee_bps == 100
        assert cfg.simulation.funding_rate == -200
        assert cfg.notifications.telegram.chat_id == "999"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_minimal_yaml_uses_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("owner: admin\n")
        cfg = load_config(cfg_file)
        assert cfg.policy == PolicyConfig()
        assert cfg.assets["ETH"].price == 3000 * E18
        assert cfg.yield_tokens[AssetClass.ETH] == "yETH"

    def test_env_interpolation_in_yaml(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TEST_OWNER", "treasury")
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text('owner: "${TEST_OWNER}"\n')
        assert load_config(cfg_file).owner == "treasury"


class TestValidation:
    def test_missing_owner(self) -> None:
        with pytest.raises(ValueError, match="owner"):
            validate(VaultConfig())

    def test_targets_must_sum(self) -> None:
        cfg = VaultConfig(owner="ops", policy=PolicyConfig(eth_target_bps=5000))
        with pytest.raises(ValueError, match="sum to 10000"):
            validate(cfg)

    def test_unknown_asset_class(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("owner: ops\nassets:\n  SOL: {class: SOL, price: 150}\n")
        with pytest.raises(ValueError, match="Unknown asset class"):
            load_config(cfg_file)

    def test_yield_token_without_asset(self) -> None:
        cfg = VaultConfig(
            owner="ops",
            yield_tokens={AssetClass.ETH: "stETH", AssetClass.BTC: "yBTC", AssetClass.USD: "yUSD"},
        )
        with pytest.raises(ValueError, match="stETH"):
            validate(cfg)

    def test_yield_token_class_mismatch(self) -> None:
        cfg = VaultConfig(
            owner="ops",
            yield_tokens={AssetClass.ETH: "yBTC", AssetClass.BTC: "yBTC", AssetClass.USD: "yUSD"},
        )
        with pytest.raises(ValueError, match="'yBTC' is class BTC, expected ETH"):
            validate(cfg)

    def test_yield_token_class_mismatch_in_yaml(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("owner: ops\nyield_tokens: {ETH: yBTC, BTC: yBTC, USD: yUSD}\n")
        with pytest.raises(ValueError, match="expected ETH"):
            load_config(cfg_file)

    def test_usd_hedge_asset_rejected(self) -> None:
        cfg = VaultConfig(
            owner="ops",
            hedge_assets={AssetClass.ETH: "ETH", AssetClass.BTC: "BTC", AssetClass.USD: "USDC"},
        )
        with pytest.raises(ValueError, match="USD class"):
            validate(cfg)

    def test_hedge_asset_class_mismatch(self) -> None:
        cfg = VaultConfig(
            owner="ops", hedge_assets={AssetClass.ETH: "BTC", AssetClass.BTC: "BTC"}
        )
        with pytest.raises(ValueError, match="expected ETH"):
            validate(cfg)

    def test_missing_hedge_asset(self) -> None:
        cfg = VaultConfig(owner="ops", hedge_assets={AssetClass.ETH: "ETH"})
        with pytest.raises(ValueError, match="No hedge asset"):
            validate(cfg)


class TestFrozenConfigs:
    def test_policy_immutable(self) -> None:
        p = PolicyConfig()
        with pytest.raises(AttributeError):
            p.eth_target_bps = 1  # type: ignore[misc]

    def test_to_policy(self) -> None:
        policy = PolicyConfig(rebalance_threshold_bps=250).to_policy()
        assert policy.rebalance_threshold_bps == 250
        assert policy.usd_target_bps == 4000
