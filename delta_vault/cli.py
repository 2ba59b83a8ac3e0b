"""Command-line interface for the delta-neutral vault."""
from __future__ import annotations

import argparse
import asyncio
import sys
from decimal import Decimal, InvalidOperation

from .config import VaultConfig, load_config
from .logging_setup import configure_logging
from .models import BPS, USD_DECIMALS, AssetClass, PortfolioSummary, RebalanceReport
from .simulated import build_simulated_vault

PARTICIPANT = "cli"


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="delta-vault",
        description="Delta-neutral vault accounting and rebalancing",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("policy", help="Show allocation policy and rate table")

    sim = sub.add_parser("simulate", help="Run deposits/hedges against simulated venues")
    sim.add_argument(
        "--deposit",
        action="append",
        default=[],
        metavar="CLASS:AMOUNT",
        help="Deposit AMOUNT whole tokens into ETH, BTC or USD (repeatable)",
    )
    sim.add_argument(
        "--hedge",
        action="append",
        default=[],
        metavar="ASSET:AMOUNT",
        help="Open a short of AMOUNT whole tokens of ASSET (repeatable)",
    )
    sim.add_argument(
        "--rebalance",
        action="store_true",
        help="Rebalance after deposits and hedges",
    )

    return parser


def _split(spec: str) -> tuple[str, Decimal]:
    name, sep, amount = spec.partition(":")
    if not sep:
        raise ValueError(f"Expected NAME:AMOUNT, got '{spec}'")
    try:
        return name.strip(), Decimal(amount)
    except InvalidOperation:
        raise ValueError(f"Invalid amount in '{spec}'") from None


def _parse_class(name: str, spec: str) -> AssetClass:
    try:
        return AssetClass(name.upper())
    except ValueError:
        choices = ", ".join(c.value for c in AssetClass)
        raise ValueError(f"Unknown asset class in '{spec}', expected one of {choices}") from None


def _to_units(config: VaultConfig, asset: str, amount: Decimal) -> int:
    entry = config.assets.get(asset)
    decimals = entry.decimals if entry else 18
    return int(amount * 10**decimals)


def _usd(value: int) -> str:
    return f"${Decimal(value) / 10**USD_DECIMALS:,.2f}"


def _format_summary(summary: PortfolioSummary) -> str:
    return (
        f"Total value:  {_usd(summary.total_value)}\n"
        f"ETH exposure: {_usd(summary.eth_exposure)}\n"
        f"BTC exposure: {_usd(summary.btc_exposure)}\n"
        f"USD exposure: {_usd(summary.usd_exposure)}"
    )


def _format_report(report: RebalanceReport) -> str:
    lines = ["Rebalance:"]
    for adj in report.adjustments:
        line = f"  {adj.asset_class.value}: {adj.action} ({_usd(adj.adjustment_usd)})"
        if adj.reduction is not None and adj.reduction.unmet_usd > 0:
            line += f", unmet {_usd(adj.reduction.unmet_usd)}"
        lines.append(line)
    if not report.adjustments:
        lines.append("  nothing to do")
    return "\n".join(lines)


def _show_policy(config: VaultConfig) -> None:
    p = config.policy
    print(
        f"Targets: ETH {p.eth_target_bps} / BTC {p.btc_target_bps} / "
        f"USD {p.usd_target_bps} bps"
    )
    print(f"Threshold: {p.rebalance_threshold_bps} bps · Max slippage: {p.max_slippage_bps} bps")
    print("Assets:")
    for symbol, entry in sorted(config.assets.items()):
        print(f"  {symbol:<6} {entry.asset_class.value}  {_usd(entry.price)}")


async def _simulate(config: VaultConfig, args: argparse.Namespace) -> None:
    vault = build_simulated_vault(config)

    for spec in args.deposit:
        name, amount = _split(spec)
        asset_class = _parse_class(name, spec)
        token = config.yield_tokens[asset_class]
        await vault.deposit(PARTICIPANT, asset_class, _to_units(config, token, amount))

    for spec in args.hedge:
        asset, amount = _split(spec)
        await vault.open_hedge(PARTICIPANT, asset, _to_units(config, asset, amount))

    print(_format_summary(vault.get_portfolio_summary(PARTICIPANT)))
    print(f"Needs rebalancing: {'yes' if vault.needs_rebalancing(PARTICIPANT) else 'no'}")

    if args.rebalance:
        report = await vault.rebalance(PARTICIPANT)
        print(_format_report(report))
        print(_format_summary(report.after))

    apr = await vault.estimated_apr(PARTICIPANT)
    print(f"Estimated APR: {Decimal(apr) / BPS * 100:.2f}%")


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "policy":
        _show_policy(config)
    elif args.command == "simulate":
        await _simulate(config, args)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except ValueError as e:
        parser.error(str(e))
