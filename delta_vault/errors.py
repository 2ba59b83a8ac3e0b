"""Vault exceptions.

Every error raised by the vault inherits from ``VaultError``. Each concrete
class also inherits the closest builtin so callers that only know about
``ValueError`` or ``PermissionError`` still catch it.
"""
from __future__ import annotations

from typing import Any


class VaultError(Exception):
    """Base exception for vault errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class PreconditionError(VaultError, ValueError):
    """Input rejected before any ledger mutation (zero amount, bad venue, ...)."""


class AuthorizationError(VaultError, PermissionError):
    """Non-owner attempted a configuration operation."""


class CollaboratorError(VaultError, RuntimeError):
    """An external collaborator failed or returned an unusable result."""


class ReentrancyError(VaultError, RuntimeError):
    """A mutating entry point was re-entered before the first call finished."""
