"""Notifier protocol — delivery channel for vault events."""
from typing import Protocol


class Notifier(Protocol):
    """Abstract interface for delivering vault notifications.

    ``send_log`` carries routine events (deposits, hedges, rebalances);
    ``send_alert`` is reserved for conditions an operator should act on.
    """

    async def send_alert(self, message: str, subject: str = "") -> bool: ...

    async def send_log(self, message: str, silent: bool = True) -> bool: ...
