"""Hedging venue protocol — leveraged short positions."""
from typing import Protocol

from ..models import HedgeVenuePosition


class HedgingVenue(Protocol):
    """Abstract interface for opening and closing short hedges."""

    async def open_short(
        self, asset: str, amount: int, max_slippage_bps: int
    ) -> tuple[str, int]: ...

    async def close_short(
        self, venue_position_id: str, amount: int, max_slippage_bps: int
    ) -> tuple[int, int]: ...

    async def get_position_info(self, venue_position_id: str) -> HedgeVenuePosition: ...

    async def get_funding_rate(self, asset: str) -> int: ...

    async def add_collateral(self, venue_position_id: str, amount: int) -> None: ...

    async def remove_collateral(self, venue_position_id: str, amount: int) -> None: ...
