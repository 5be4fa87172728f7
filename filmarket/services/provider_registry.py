"""Keyed store of storage-provider listings."""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..schemas import StorageProvider


def merge_preserving_region(existing: Optional[StorageProvider], incoming: StorageProvider) -> StorageProvider:
    """Build the record to store for ``incoming``.

    The first write of an ``id`` fixes its ``region``; later writes only
    replace the numeric fields.
    """

    if existing is None:
        return incoming.model_copy(deep=True)
    return existing.model_copy(
        update={
            "power": incoming.power,
            "price": incoming.price,
            "price_fil": incoming.price_fil,
        }
    )


class ProviderRegistry:
    """In-memory provider store, iterated in first-seen insertion order."""

    def __init__(self, providers: Iterable[StorageProvider] = ()) -> None:
        self._providers: Dict[str, StorageProvider] = {}
        for provider in providers:
            self._providers[provider.id] = provider.model_copy(deep=True)

    def upsert_many(self, records: Iterable[StorageProvider]) -> int:
        """Create or update each record in order and return how many were written."""

        count = 0
        for record in records:
            self._providers[record.id] = merge_preserving_region(self._providers.get(record.id), record)
            count += 1
        return count

    def delete_many(self, ids: Iterable[str]) -> int:
        """Remove the listed ids, skipping unknown ones. Returns how many were removed."""

        removed = 0
        for provider_id in ids:
            if self._providers.pop(provider_id, None) is not None:
                removed += 1
        return removed

    def get(self, provider_id: str) -> Optional[StorageProvider]:
        provider = self._providers.get(provider_id)
        return provider.model_copy(deep=True) if provider else None

    def list_all(self) -> List[StorageProvider]:
        return [provider.model_copy(deep=True) for provider in self._providers.values()]

    def __len__(self) -> int:
        return len(self._providers)


__all__ = ["ProviderRegistry", "merge_preserving_region"]
