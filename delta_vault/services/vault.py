"""Vault orchestration — participant entry points and owner configuration."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Iterator, Mapping

from .. import events as ev
from ..errors import (
    AuthorizationError,
    CollaboratorError,
    PreconditionError,
    ReentrancyError,
    VaultError,
)
from ..events import VaultEvent, format_event
from ..interfaces.hedging_venue import HedgingVenue
from ..interfaces.issuer import YieldIssuer
from ..interfaces.notifier import Notifier
from ..interfaces.stable_venue import StableYieldVenue
from ..interfaces.valuation import Valuation
from ..models import (
    BPS,
    AllocationPolicy,
    AssetClass,
    PortfolioSummary,
    RebalanceReport,
    ReductionResult,
    StablePosition,
    YieldPosition,
)
from .exposure import ExposureCalculator
from .ledger import PositionLedger
from .rebalancer import RebalanceEngine
from .venues import VenueRegistry
from .yield_estimator import YieldEstimator

logger = logging.getLogger(__name__)


class DeltaNeutralVault:
    """Accounts participant positions and keeps them near the target allocation.

    The vault is a single logical writer: one mutating entry point may be in
    flight at a time, and any mutating call reached before it finishes (for
    any participant) is rejected. A failed mutation rolls the participant's
    ledger back.
    """

    def __init__(
        self,
        owner: str,
        valuation: Valuation,
        issuers: Mapping[AssetClass, YieldIssuer],
        hedging_venue: HedgingVenue,
        hedge_assets: Mapping[AssetClass, str],
        policy: AllocationPolicy | None = None,
        stable_venues: Mapping[str, StableYieldVenue] | None = None,
        notifiers: list[Notifier] | None = None,
    ) -> None:
        if not owner:
            raise ValueError("Vault owner is required")
        missing = [cls.value for cls in AssetClass if cls not in issuers]
        if missing:
            raise ValueError(f"No issuer for asset classes: {', '.join(missing)}")

        self._owner = owner
        self._issuers = dict(issuers)
        self._hedging_venue = hedging_venue
        self._policy = policy or AllocationPolicy()
        _check_targets(self._policy)

        self._ledger = PositionLedger(valuation)
        self._exposure = ExposureCalculator(self._ledger)
        self._engine = RebalanceEngine(self._ledger, self._exposure, hedge_assets)
        self._venues = VenueRegistry()
        for venue_id, venue in (stable_venues or {}).items():
            self._venues.approve(venue_id, venue)
        self._estimator = YieldEstimator(
            self._ledger,
            self._exposure,
            {issuer.token: issuer for issuer in self._issuers.values()},
        )

        self._notifiers: list[Notifier] = list(notifiers or [])
        self._events: list[VaultEvent] = []
        # (participant, operation) of the mutation in flight, if any
        self._in_flight: tuple[str, str] | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def policy(self) -> AllocationPolicy:
        return self._policy

    @property
    def ledger(self) -> PositionLedger:
        return self._ledger

    @property
    def hedging_venue(self) -> HedgingVenue:
        return self._hedging_venue

    @property
    def events(self) -> list[VaultEvent]:
        return list(self._events)

    def approved_venues(self) -> list[str]:
        return self._venues.approved_ids()

    # ------------------------------------------------------------------
    # Guard, rollback, collaborator errors
    # ------------------------------------------------------------------

    @contextmanager
    def _mutation(self, participant: str, operation: str) -> Iterator[None]:
        if self._in_flight is not None:
            active_participant, active_operation = self._in_flight
            raise ReentrancyError(
                f"{operation} for {participant} rejected while {active_operation} "
                f"for {active_participant} is in flight",
                {
                    "participant": participant,
                    "operation": operation,
                    "in_flight": active_operation,
                },
            )
        self._in_flight = (participant, operation)
        snapshot = self._ledger.snapshot(participant)
        try:
            yield
        except VaultError:
            self._ledger.restore(snapshot)
            raise
        except Exception as e:
            self._ledger.restore(snapshot)
            logger.error("%s failed for %s: %s", operation, participant, e)
            raise CollaboratorError(
                f"{operation} aborted: {e}",
                {"participant": participant, "operation": operation},
            ) from e
        except BaseException:
            self._ledger.restore(snapshot)
            raise
        finally:
            self._in_flight = None

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise AuthorizationError(
                "Only the owner may change vault configuration", {"caller": caller}
            )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def _emit(self, name: str, participant: str = "", **data: Any) -> None:
        event = VaultEvent(name=name, participant=participant, data=data)
        self._events.append(event)
        message = format_event(event)
        for notifier in self._notifiers:
            try:
                if event.is_alert:
                    await notifier.send_alert(message, subject=event.title)
                else:
                    await notifier.send_log(message, silent=True)
            except Exception as e:
                logger.error("Notifier failed for %s: %s", name, e)

    # ------------------------------------------------------------------
    # Participant entry points
    # ------------------------------------------------------------------

    async def deposit(
        self, participant: str, asset_class: AssetClass, amount: int
    ) -> YieldPosition:
        """Mint the class's yield token for ``amount`` and record the position."""
        if amount <= 0:
            raise PreconditionError("Deposit amount must be positive", {"amount": amount})
        issuer = self._issuers[asset_class]

        with self._mutation(participant, "deposit"):
            minted = await issuer.deposit(amount)
            if minted <= 0:
                raise CollaboratorError(
                    "Issuer minted nothing", {"asset_class": asset_class.value}
                )
            position = self._ledger.record_yield_deposit(
                participant, asset_class, issuer.token, minted
            )

        logger.info(
            "Deposit recorded for %s: %d %s (value %d)",
            participant, position.amount, position.asset, position.value,
        )
        await self._emit(
            ev.DEPOSIT_RECORDED, participant,
            asset=position.asset, amount=position.amount, value=position.value,
        )
        return position

    async def open_hedge(self, participant: str, asset: str, amount: int) -> int:
        """Open a short of ``amount`` ``asset`` units. Returns the ledger id."""
        self._ledger.check_hedgeable(asset, amount)

        with self._mutation(participant, "open_hedge"):
            position_id = await self._engine.open_hedge(
                participant, self._hedging_venue, asset, amount,
                self._policy.max_slippage_bps,
            )

        await self._emit_hedge_opened(participant, position_id)
        return position_id

    async def reduce_hedge(
        self, participant: str, asset_class: AssetClass, usd_value: int
    ) -> ReductionResult:
        """Close up to ``usd_value`` USD of the participant's shorts in a class."""
        if asset_class is AssetClass.USD:
            raise PreconditionError("Stable exposure has no hedges to reduce")
        if usd_value <= 0:
            raise PreconditionError("Reduction value must be positive", {"usd": usd_value})

        with self._mutation(participant, "reduce_hedge"):
            result = await self._engine.reduce_hedges(
                participant, self._hedging_venue, asset_class, usd_value,
                self._policy.max_slippage_bps,
            )

        await self._report_partial(participant, asset_class, result)
        return result

    async def deploy_stable(
        self, participant: str, venue_id: str, amount: int
    ) -> StablePosition:
        """Deploy stable yield-bearing capital into an approved venue."""
        if not self._venues.is_approved(venue_id):
            raise PreconditionError(f"Venue '{venue_id}' is not approved", {"venue": venue_id})
        if amount <= 0:
            raise PreconditionError("Deploy amount must be positive", {"amount": amount})
        venue = self._venues.get(venue_id)
        if venue is None:
            raise PreconditionError(
                f"Venue '{venue_id}' has no registered client", {"venue": venue_id}
            )
        asset = self._issuers[AssetClass.USD].token

        with self._mutation(participant, "deploy_stable"):
            shares = await venue.deposit(asset, amount)
            if shares <= 0:
                raise CollaboratorError("Venue minted no shares", {"venue": venue_id})
            position = self._ledger.record_stable_deploy(
                participant, venue_id, asset, amount, approved=True
            )

        await self._emit(
            ev.STABLE_DEPLOYED, participant,
            venue=venue_id, amount=amount, shares=shares, value=position.value,
        )
        return position

    async def rebalance(self, participant: str) -> RebalanceReport:
        """Bring ETH and BTC exposure back to target. No-op on an empty portfolio."""
        with self._mutation(participant, "rebalance"):
            report = await self._engine.rebalance(
                participant, self._policy, self._hedging_venue
            )

        if report.before.total_value == 0:
            return report

        for adjustment in report.adjustments:
            if adjustment.position_id is not None:
                await self._emit_hedge_opened(participant, adjustment.position_id)
            if adjustment.reduction is not None:
                await self._report_partial(
                    participant, adjustment.asset_class, adjustment.reduction
                )
        await self._emit(
            ev.REBALANCE_COMPLETED, participant,
            eth_exposure=report.after.eth_exposure,
            btc_exposure=report.after.btc_exposure,
            usd_exposure=report.after.usd_exposure,
        )
        return report

    async def _emit_hedge_opened(self, participant: str, position_id: int) -> None:
        hedge = self._ledger.get_hedge(position_id)
        if hedge is None:
            return
        await self._emit(
            ev.HEDGE_OPENED, participant,
            position_id=position_id, asset=hedge.asset,
            amount=hedge.amount, value=hedge.value,
        )

    async def _report_partial(
        self, participant: str, asset_class: AssetClass, result: ReductionResult
    ) -> None:
        if result.unmet_usd > 0:
            await self._emit(
                ev.HEDGE_REDUCTION_PARTIAL, participant,
                asset_class=asset_class.value,
                requested=result.requested_usd, unmet=result.unmet_usd,
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_portfolio_summary(self, participant: str) -> PortfolioSummary:
        return self._exposure.summary(participant)

    def needs_rebalancing(self, participant: str) -> bool:
        return self._engine.needs_rebalancing(participant, self._policy)

    async def estimated_apr(self, participant: str) -> int:
        return await self._estimator.estimated_apr_bps(participant)

    # ------------------------------------------------------------------
    # Owner configuration
    # ------------------------------------------------------------------

    async def approve_venue(
        self, caller: str, venue_id: str, venue: StableYieldVenue | None = None
    ) -> None:
        self._require_owner(caller)
        if venue is None and self._venues.get(venue_id) is None:
            raise PreconditionError(
                f"Venue '{venue_id}' needs a client on first approval", {"venue": venue_id}
            )
        self._venues.approve(venue_id, venue)
        await self._emit(ev.VENUE_APPROVED, venue=venue_id)

    async def revoke_venue(self, caller: str, venue_id: str) -> None:
        self._require_owner(caller)
        if self._venues.revoke(venue_id):
            await self._emit(ev.VENUE_REVOKED, venue=venue_id)

    async def set_hedging_venue(
        self, caller: str, venue: HedgingVenue, name: str = ""
    ) -> None:
        self._require_owner(caller)
        self._hedging_venue = venue
        await self._emit(ev.HEDGING_VENUE_CHANGED, venue=name or type(venue).__name__)

    async def set_target_allocation(
        self, caller: str, eth_bps: int, btc_bps: int, usd_bps: int
    ) -> None:
        self._require_owner(caller)
        policy = AllocationPolicy(
            eth_target_bps=eth_bps,
            btc_target_bps=btc_bps,
            usd_target_bps=usd_bps,
            rebalance_threshold_bps=self._policy.rebalance_threshold_bps,
            max_slippage_bps=self._policy.max_slippage_bps,
        )
        _check_targets(policy)
        self._policy = policy
        await self._emit(ev.POLICY_CHANGED, eth_bps=eth_bps, btc_bps=btc_bps, usd_bps=usd_bps)

    async def set_rebalance_threshold(self, caller: str, threshold_bps: int) -> None:
        self._require_owner(caller)
        _check_bps("rebalance threshold", threshold_bps)
        self._policy = _replace_policy(self._policy, rebalance_threshold_bps=threshold_bps)
        await self._emit(ev.POLICY_CHANGED, rebalance_threshold_bps=threshold_bps)

    async def set_max_slippage(self, caller: str, slippage_bps: int) -> None:
        self._require_owner(caller)
        _check_bps("max slippage", slippage_bps)
        self._policy = _replace_policy(self._policy, max_slippage_bps=slippage_bps)
        await self._emit(ev.POLICY_CHANGED, max_slippage_bps=slippage_bps)


def _check_bps(label: str, value: int) -> None:
    if not 0 <= value <= BPS:
        raise PreconditionError(f"{label} must be within 0..{BPS} bps, got {value}")


def _check_targets(policy: AllocationPolicy) -> None:
    targets = (policy.eth_target_bps, policy.btc_target_bps, policy.usd_target_bps)
    for value in targets:
        _check_bps("target allocation", value)
    if sum(targets) != BPS:
        raise PreconditionError(
            f"Target allocations must sum to {BPS} bps, got {sum(targets)}",
            {"targets": targets},
        )


def _replace_policy(policy: AllocationPolicy, **changes: int) -> AllocationPolicy:
    return replace(policy, **changes)
