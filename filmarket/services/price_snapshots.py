"""Time-indexed store of region price snapshots with a "latest" pointer."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..schemas import SENTINEL_TIMESTAMP, PriceSnapshot
from .logging import CallContext

logger = logging.getLogger(__name__)


def merge_whole_replace(existing: Optional[PriceSnapshot], incoming: PriceSnapshot) -> PriceSnapshot:
    """Replace every field of ``existing`` except its timestamp."""

    if existing is None:
        return incoming.model_copy(deep=True)
    return incoming.model_copy(update={"timestamp": existing.timestamp}, deep=True)


class PriceSnapshotStore:
    """Snapshots keyed by timestamp.

    ``latest_timestamp`` is plain state: it follows the most recent upsert,
    not the largest timestamp, and deletes never move it.
    """

    def __init__(
        self,
        snapshots: Iterable[PriceSnapshot] = (),
        latest_timestamp: int = SENTINEL_TIMESTAMP,
    ) -> None:
        self._snapshots: Dict[int, PriceSnapshot] = {}
        for snapshot in snapshots:
            self._snapshots[snapshot.timestamp] = snapshot.model_copy(deep=True)
        self.latest_timestamp = latest_timestamp

    def upsert(self, snapshot: PriceSnapshot, context: CallContext | None = None) -> bool:
        if snapshot.timestamp == SENTINEL_TIMESTAMP:
            if context:
                context.warning(
                    logger,
                    "snapshot with sentinel timestamp ignored",
                    event="snapshot.sentinel_timestamp",
                )
            else:
                logger.warning("snapshot with sentinel timestamp ignored")
            return False
        key = snapshot.timestamp
        self._snapshots[key] = merge_whole_replace(self._snapshots.get(key), snapshot)
        self.latest_timestamp = snapshot.timestamp
        return True

    def delete_many(self, timestamps: Iterable[int]) -> int:
        removed = 0
        for timestamp in timestamps:
            if self._snapshots.pop(timestamp, None) is not None:
                removed += 1
        return removed

    def list_all(self) -> List[PriceSnapshot]:
        return [snapshot.model_copy(deep=True) for snapshot in self._snapshots.values()]

    def get_latest(self) -> PriceSnapshot:
        """Return the snapshot at ``latest_timestamp`` or an all-default record."""

        snapshot = self._snapshots.get(self.latest_timestamp)
        if snapshot is None:
            return PriceSnapshot()
        return snapshot.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._snapshots)


__all__ = ["PriceSnapshotStore", "merge_whole_replace"]
