"""Vault events and their text rendering for notifiers."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

DEPOSIT_RECORDED = "deposit_recorded"
HEDGE_OPENED = "hedge_opened"
HEDGE_REDUCTION_PARTIAL = "hedge_reduction_partial"
STABLE_DEPLOYED = "stable_deployed"
VENUE_APPROVED = "venue_approved"
VENUE_REVOKED = "venue_revoked"
HEDGING_VENUE_CHANGED = "hedging_venue_changed"
POLICY_CHANGED = "policy_changed"
REBALANCE_COMPLETED = "rebalance_completed"

ALERT_EVENTS = frozenset({HEDGE_REDUCTION_PARTIAL})

_TITLES = {
    DEPOSIT_RECORDED: "📥 Deposit recorded",
    HEDGE_OPENED: "🛡️ Hedge opened",
    HEDGE_REDUCTION_PARTIAL: "⚠️ Hedge reduction incomplete",
    STABLE_DEPLOYED: "🏦 Stable capital deployed",
    VENUE_APPROVED: "✅ Venue approved",
    VENUE_REVOKED: "⛔ Venue revoked",
    HEDGING_VENUE_CHANGED: "🔁 Hedging venue changed",
    POLICY_CHANGED: "📐 Allocation policy changed",
    REBALANCE_COMPLETED: "⚖️ Rebalance completed",
}


@dataclass(frozen=True)
class VaultEvent:
    name: str
    participant: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_alert(self) -> bool:
        return self.name in ALERT_EVENTS

    @property
    def title(self) -> str:
        return _TITLES.get(self.name, self.name)


def format_event(event: VaultEvent) -> str:
    """Render an event as a short multi-line message."""
    lines = [event.title]
    if event.participant:
        lines.append(f"Participant: {event.participant}")
    lines.append("")
    for key, value in event.data.items():
        lines.append(f"{key}: {value}")
    lines.append("")
    lines.append(f"{event.timestamp.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    return "\n".join(lines)
