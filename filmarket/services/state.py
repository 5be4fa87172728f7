"""Durable hosts that persist committed registry state between calls."""
from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from ..schemas import RegistryState
from .errors import StateHostError

logger = logging.getLogger(__name__)


class StateHost(ABC):
    """Call-atomic storage for one registry's state."""

    @abstractmethod
    def exists(self) -> bool:
        """Return whether any state has been committed."""

    @abstractmethod
    def read(self) -> RegistryState | None:
        """Return the last committed state, or ``None`` before construction."""

    @abstractmethod
    def write(self, state: RegistryState) -> None:
        """Commit ``state`` in full, replacing what was there."""

    @abstractmethod
    def clear(self) -> None:
        """Drop all committed state."""


class InMemoryStateHost(StateHost):
    def __init__(self) -> None:
        self._state: RegistryState | None = None

    def exists(self) -> bool:
        return self._state is not None

    def read(self) -> RegistryState | None:
        return self._state.model_copy(deep=True) if self._state else None

    def write(self, state: RegistryState) -> None:
        self._state = state.model_copy(deep=True)

    def clear(self) -> None:
        self._state = None


class JsonFileStateHost(StateHost):
    """Keeps the state as a JSON document; commits go through a temp file and ``os.replace``."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> RegistryState | None:
        if not self.path.exists():
            return None
        try:
            return RegistryState.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.exception("registry state unreadable", extra={"path": str(self.path)})
            raise StateHostError(f"Could not read registry state from {self.path}") from exc

    def write(self, state: RegistryState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = state.model_dump_json(indent=2)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.exception("registry state commit failed", extra={"path": str(self.path)})
            raise StateHostError(f"Could not write registry state to {self.path}") from exc

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = ["InMemoryStateHost", "JsonFileStateHost", "StateHost"]
