"""Error types raised by the registry services."""
from __future__ import annotations


class RegistryError(Exception):
    """Base error for registry failures."""


class RegistryAlreadyInitializedError(RegistryError):
    """Raised when construction finds committed state already present."""


class RegistryNotInitializedError(RegistryError):
    """Raised when loading a registry that was never constructed."""


class UnauthorizedCallerError(RegistryError):
    """Raised for non-owner mutations when strict rejection is enabled."""

    def __init__(self, operation: str, caller: str) -> None:
        super().__init__(f"{caller} is not allowed to call {operation}")
        self.operation = operation
        self.caller = caller


class StateHostError(RegistryError):
    """Raised when the durable host cannot read or commit state."""


__all__ = [
    "RegistryError",
    "RegistryAlreadyInitializedError",
    "RegistryNotInitializedError",
    "StateHostError",
    "UnauthorizedCallerError",
]
