"""Active-provider counts per region."""
from __future__ import annotations

from ..schemas import ActivePerRegion


class RegionActivityCounters:
    """Whole-value holder; values are stored as given, negatives included."""

    def __init__(self, counts: ActivePerRegion | None = None) -> None:
        self._counts = counts.model_copy() if counts else ActivePerRegion()

    def set(self, counts: ActivePerRegion) -> None:
        self._counts = counts.model_copy()

    def get(self) -> ActivePerRegion:
        return self._counts.model_copy()


__all__ = ["RegionActivityCounters"]
