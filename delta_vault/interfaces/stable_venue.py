"""Stable yield venue protocol — external stablecoin yield."""
from typing import Protocol


class StableYieldVenue(Protocol):
    """Abstract interface for a stable yield venue."""

    async def deposit(self, asset: str, amount: int) -> int: ...

    async def withdraw(self, asset: str, shares: int) -> int: ...

    async def get_balance(self, asset: str) -> int: ...

    async def get_current_apr(self) -> int: ...

    async def get_tvl(self) -> int: ...
