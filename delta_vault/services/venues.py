"""Stable venue registry — ordered set of approved venue ids."""
from __future__ import annotations

from ..interfaces.stable_venue import StableYieldVenue


class VenueRegistry:
    """Tracks approved venues incrementally.

    Revoking a venue removes its approval but keeps the collaborator so
    existing positions can still be valued and queried.
    """

    def __init__(self) -> None:
        self._approved: dict[str, None] = {}
        self._venues: dict[str, StableYieldVenue] = {}

    def approve(self, venue_id: str, venue: StableYieldVenue | None = None) -> None:
        if venue is not None:
            self._venues[venue_id] = venue
        self._approved[venue_id] = None

    def revoke(self, venue_id: str) -> bool:
        if venue_id not in self._approved:
            return False
        del self._approved[venue_id]
        return True

    def is_approved(self, venue_id: str) -> bool:
        return venue_id in self._approved

    def get(self, venue_id: str) -> StableYieldVenue | None:
        return self._venues.get(venue_id)

    def approved_ids(self) -> list[str]:
        return list(self._approved)
