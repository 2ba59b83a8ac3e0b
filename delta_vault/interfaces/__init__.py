"""Protocol interfaces for the vault's external collaborators."""
from .hedging_venue import HedgingVenue
from .issuer import YieldIssuer
from .notifier import Notifier
from .stable_venue import StableYieldVenue
from .valuation import Valuation

__all__ = ["HedgingVenue", "Notifier", "StableYieldVenue", "Valuation", "YieldIssuer"]
