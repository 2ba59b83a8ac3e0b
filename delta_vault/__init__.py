"""Delta-neutral vault: position ledger, exposure accounting and rebalancing."""
from .errors import (
    AuthorizationError,
    CollaboratorError,
    PreconditionError,
    ReentrancyError,
    VaultError,
)
from .models import AllocationPolicy, AssetClass, PortfolioSummary
from .services import DeltaNeutralVault, StaticValuation

__all__ = [
    "AllocationPolicy",
    "AssetClass",
    "AuthorizationError",
    "CollaboratorError",
    "DeltaNeutralVault",
    "PortfolioSummary",
    "PreconditionError",
    "ReentrancyError",
    "StaticValuation",
    "VaultError",
]
