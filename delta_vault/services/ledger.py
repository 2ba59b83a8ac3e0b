"""Position ledger — yield, hedge and stable-venue positions per participant."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterator, TypeVar

from ..errors import PreconditionError
from ..interfaces.valuation import Valuation
from ..models import AssetClass, HedgePosition, ReductionResult, StablePosition, YieldPosition

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Async callback that asks the hedging venue to close ``amount`` of a
# position and returns the amount actually closed.
CloseFn = Callable[[HedgePosition, int], Awaitable[int]]


class Arena(Generic[T]):
    """Append-only store with stable integer keys, iterated in insertion order."""

    def __init__(self) -> None:
        self._items: dict[int, T] = {}
        self._next_key = 0

    def add(self, item: T) -> int:
        key = self._next_key
        self._items[key] = item
        self._next_key += 1
        return key

    def get(self, key: int) -> T:
        return self._items[key]

    def remove(self, key: int) -> T:
        return self._items.pop(key)

    def copy(self) -> Arena[T]:
        clone: Arena[T] = Arena()
        clone._items = dict(self._items)
        clone._next_key = self._next_key
        return clone

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)


class IdSequence:
    """Ordered hedge ids with O(1) swap-with-last-and-pop removal.

    Removal moves the last id into the vacated slot, so the relative order of
    the remaining ids is not preserved.
    """

    def __init__(self, ids: list[int] | None = None) -> None:
        self._ids: list[int] = list(ids or [])

    def append(self, position_id: int) -> None:
        self._ids.append(position_id)

    def swap_remove(self, index: int) -> int:
        removed = self._ids[index]
        last = self._ids.pop()
        if index < len(self._ids):
            self._ids[index] = last
        return removed

    def copy(self) -> IdSequence:
        return IdSequence(self._ids)

    def __getitem__(self, index: int) -> int:
        return self._ids[index]

    def __contains__(self, position_id: object) -> bool:
        return position_id in self._ids

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)


@dataclass
class ParticipantBook:
    yields: dict[AssetClass, Arena[YieldPosition]] = field(default_factory=dict)
    hedge_ids: IdSequence = field(default_factory=IdSequence)
    stables: dict[str, Arena[StablePosition]] = field(default_factory=dict)

    def copy(self) -> ParticipantBook:
        return ParticipantBook(
            yields={k: v.copy() for k, v in self.yields.items()},
            hedge_ids=self.hedge_ids.copy(),
            stables={k: v.copy() for k, v in self.stables.items()},
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    participant: str
    book: ParticipantBook | None
    hedges: dict[int, HedgePosition]


class PositionLedger:
    """Owns every participant's positions plus the global hedge table."""

    def __init__(self, valuation: Valuation) -> None:
        self._valuation = valuation
        self._books: dict[str, ParticipantBook] = {}
        self._hedges: dict[int, HedgePosition] = {}
        self._next_hedge_id = 1

    @property
    def valuation(self) -> Valuation:
        return self._valuation

    def _book(self, participant: str) -> ParticipantBook:
        book = self._books.get(participant)
        if book is None:
            book = self._books[participant] = ParticipantBook()
        return book

    # ------------------------------------------------------------------
    # Mutation primitives
    # ------------------------------------------------------------------

    def record_yield_deposit(
        self, participant: str, asset_class: AssetClass, asset: str, minted_amount: int
    ) -> YieldPosition:
        if minted_amount <= 0:
            raise PreconditionError(
                "Minted amount must be positive",
                {"participant": participant, "asset": asset, "amount": minted_amount},
            )
        position = YieldPosition(
            asset=asset,
            amount=minted_amount,
            value=self._valuation.value_of(asset, minted_amount),
            asset_class=asset_class,
        )
        self._book(participant).yields.setdefault(asset_class, Arena()).add(position)
        logger.debug("Yield position recorded for %s: %r", participant, position)
        return position

    def record_hedge_open(
        self,
        participant: str,
        asset: str,
        executed_amount: int,
        funding_rate: int,
        venue_ref: str | None = None,
    ) -> int:
        self.check_hedgeable(asset, executed_amount)
        position_id = self._next_hedge_id
        self._next_hedge_id += 1
        self._hedges[position_id] = HedgePosition(
            position_id=position_id,
            asset=asset,
            amount=executed_amount,
            pricer=self._valuation.value_of,
            funding_rate=funding_rate,
            venue_ref=venue_ref,
        )
        self._book(participant).hedge_ids.append(position_id)
        logger.debug("Hedge %d opened for %s on %s", position_id, participant, asset)
        return position_id

    def check_hedgeable(self, asset: str, amount: int) -> None:
        """Raise PreconditionError unless ``amount`` of ``asset`` may be hedged."""
        if amount <= 0:
            raise PreconditionError("Hedge amount must be positive", {"asset": asset})
        asset_class = self._valuation.asset_class_of(asset)
        if asset_class is None:
            raise PreconditionError(f"Unknown hedge asset '{asset}'", {"asset": asset})
        if asset_class is AssetClass.USD:
            raise PreconditionError(
                "Stable exposure cannot be hedged", {"asset": asset}
            )

    async def reduce_hedges(
        self,
        participant: str,
        asset_class: AssetClass,
        usd_to_reduce: int,
        close: CloseFn,
    ) -> ReductionResult:
        """Close up to ``usd_to_reduce`` USD of the participant's shorts in ``asset_class``.

        Positions are scanned in id-sequence order. The running remainder is
        decremented by the *requested* close value, so a venue that executes
        less than asked leaves the position larger than the result implies.
        """
        if asset_class is AssetClass.USD:
            raise PreconditionError("Stable exposure has no hedges to reduce")
        if usd_to_reduce <= 0:
            return ReductionResult(requested_usd=max(usd_to_reduce, 0), reduced_usd=0)

        ids = self._book(participant).hedge_ids
        remaining = usd_to_reduce
        closed_ids: list[int] = []
        i = 0
        while i < len(ids) and remaining > 0:
            position = self._hedges[ids[i]]
            if (
                not position.is_short
                or position.value <= 0
                or self._valuation.asset_class_of(position.asset) is not asset_class
            ):
                i += 1
                continue

            close_value = min(position.value, remaining)
            close_amount = position.amount * close_value // position.value
            if close_amount == 0:
                i += 1
                continue

            executed = await close(position, close_amount)
            position.amount -= min(max(executed, 0), position.amount)
            remaining -= close_value

            if position.amount == 0:
                # swapped-in id now sits at ``i`` and is examined next
                ids.swap_remove(i)
                del self._hedges[position.position_id]
                closed_ids.append(position.position_id)
                logger.debug("Hedge %d fully closed", position.position_id)
                continue
            i += 1

        return ReductionResult(
            requested_usd=usd_to_reduce,
            reduced_usd=usd_to_reduce - remaining,
            closed_ids=tuple(closed_ids),
        )

    def record_stable_deploy(
        self, participant: str, venue: str, asset: str, amount: int, approved: bool
    ) -> StablePosition:
        if not approved:
            raise PreconditionError(f"Venue '{venue}' is not approved", {"venue": venue})
        if amount <= 0:
            raise PreconditionError("Deploy amount must be positive", {"venue": venue})
        position = StablePosition(
            asset=asset,
            amount=amount,
            value=self._valuation.value_of(asset, amount),
            venue=venue,
        )
        self._book(participant).stables.setdefault(venue, Arena()).add(position)
        return position

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def participants(self) -> list[str]:
        return list(self._books)

    def yield_positions(
        self, participant: str, asset_class: AssetClass | None = None
    ) -> list[YieldPosition]:
        book = self._books.get(participant)
        if book is None:
            return []
        if asset_class is not None:
            return list(book.yields.get(asset_class, ()))
        return [p for arena in book.yields.values() for p in arena]

    def hedge_ids(self, participant: str) -> list[int]:
        book = self._books.get(participant)
        return list(book.hedge_ids) if book else []

    def hedge_positions(self, participant: str) -> list[HedgePosition]:
        return [self._hedges[i] for i in self.hedge_ids(participant)]

    def get_hedge(self, position_id: int) -> HedgePosition | None:
        return self._hedges.get(position_id)

    def stable_positions(
        self, participant: str, venue: str | None = None
    ) -> list[StablePosition]:
        book = self._books.get(participant)
        if book is None:
            return []
        if venue is not None:
            return list(book.stables.get(venue, ()))
        return [p for arena in book.stables.values() for p in arena]

    # ------------------------------------------------------------------
    # Rollback support
    # ------------------------------------------------------------------

    def snapshot(self, participant: str) -> LedgerSnapshot:
        book = self._books.get(participant)
        hedges: dict[int, HedgePosition] = {}
        if book is not None:
            for position_id in book.hedge_ids:
                h = self._hedges[position_id]
                hedges[position_id] = HedgePosition(
                    position_id=h.position_id,
                    asset=h.asset,
                    amount=h.amount,
                    pricer=self._valuation.value_of,
                    funding_rate=h.funding_rate,
                    is_short=h.is_short,
                    venue_ref=h.venue_ref,
                )
        return LedgerSnapshot(
            participant=participant,
            book=book.copy() if book is not None else None,
            hedges=hedges,
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """Reinstate a participant's state. Hedge ids are never reissued."""
        current = self._books.get(snapshot.participant)
        if current is not None:
            for position_id in current.hedge_ids:
                self._hedges.pop(position_id, None)
        if snapshot.book is None:
            self._books.pop(snapshot.participant, None)
        else:
            self._books[snapshot.participant] = snapshot.book
        self._hedges.update(snapshot.hedges)
        logger.debug("Ledger restored for %s", snapshot.participant)
