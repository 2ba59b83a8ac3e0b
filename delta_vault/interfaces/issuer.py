"""Yield issuer protocol — mints and redeems the yield-bearing token."""
from typing import Protocol


class YieldIssuer(Protocol):
    """Abstract interface for a yield-bearing asset issuer."""

    @property
    def token(self) -> str: ...

    async def deposit(self, amount: int) -> int: ...

    async def withdraw(self, amount: int) -> int: ...

    async def exchange_rate(self) -> int: ...

    async def current_apr(self) -> int: ...

    async def underlying_asset(self) -> str: ...
