"""The registry aggregate: owner, provider listings, price snapshots and counters."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Sequence

from ..schemas import ActivePerRegion, PriceSnapshot, RegistryState, StorageProvider
from .access import guard_mutation
from .activity import RegionActivityCounters
from .errors import RegistryAlreadyInitializedError, RegistryNotInitializedError
from .logging import CallContext
from .price_snapshots import PriceSnapshotStore
from .provider_registry import ProviderRegistry
from .state import StateHost

logger = logging.getLogger(__name__)


class MarketRegistry:
    """Owner-gated writes and open reads over the three stores.

    Every mutation is one call: guard, mutate, commit to the host. A call that
    faults before the commit is rolled back to the last committed state.
    """

    def __init__(
        self,
        host: StateHost,
        state: RegistryState,
        *,
        reject_unauthorized: bool = False,
    ) -> None:
        self._host = host
        self.reject_unauthorized = reject_unauthorized
        self._apply_state(state)

    @classmethod
    def create(
        cls,
        host: StateHost,
        caller: str,
        *,
        reject_unauthorized: bool = False,
        context: CallContext | None = None,
    ) -> "MarketRegistry":
        context = (context or CallContext()).with_caller(caller).with_operation("new")
        if host.exists():
            context.error(logger, "registry already initialized", event="registry.reinit_refused")
            raise RegistryAlreadyInitializedError("The registry is already initialized")
        state = RegistryState(owner=caller)
        host.write(state)
        context.info(logger, f"new(): owner {caller}", event="registry.created")
        return cls(host, state, reject_unauthorized=reject_unauthorized)

    @classmethod
    def load(cls, host: StateHost, *, reject_unauthorized: bool = False) -> "MarketRegistry":
        state = host.read()
        if state is None:
            raise RegistryNotInitializedError("The registry has not been initialized")
        return cls(host, state, reject_unauthorized=reject_unauthorized)

    @property
    def owner(self) -> str:
        return self._owner

    def to_state(self) -> RegistryState:
        return RegistryState(
            owner=self._owner,
            providers=self._providers.list_all(),
            snapshots=self._snapshots.list_all(),
            latest_timestamp=self._snapshots.latest_timestamp,
            active_per_region=self._counters.get(),
        )

    def _apply_state(self, state: RegistryState) -> None:
        self._owner = state.owner
        self._providers = ProviderRegistry(state.providers)
        self._snapshots = PriceSnapshotStore(state.snapshots, state.latest_timestamp)
        self._counters = RegionActivityCounters(state.active_per_region)

    def _context(self, operation: str, caller: str, context: CallContext | None) -> CallContext:
        return (context or CallContext()).with_caller(caller).with_operation(operation)

    @contextmanager
    def _call(self, context: CallContext) -> Iterator[None]:
        try:
            yield
            self._host.write(self.to_state())
        except Exception:
            context.exception(logger, "call faulted, restoring committed state", event="state.restored")
            committed = self._host.read()
            if committed is not None:
                self._apply_state(committed)
            raise

    # mutations

    def upsert_providers(
        self,
        caller: str,
        providers: Sequence[StorageProvider],
        context: CallContext | None = None,
    ) -> bool:
        context = self._context("upsert_providers", caller, context)
        if not guard_mutation("upsert_providers", caller, self._owner, context, reject=self.reject_unauthorized):
            return False
        with self._call(context):
            written = self._providers.upsert_many(providers)
        context.info(
            logger,
            f"upsert_providers(): account_id {caller} storage providers {written}",
            event="providers.upserted",
            count=written,
        )
        return True

    def delete_providers(self, caller: str, ids: Sequence[str], context: CallContext | None = None) -> bool:
        context = self._context("delete_providers", caller, context)
        if not guard_mutation("delete_providers", caller, self._owner, context, reject=self.reject_unauthorized):
            return False
        with self._call(context):
            removed = self._providers.delete_many(ids)
        context.info(
            logger,
            f"delete_providers(): account_id {caller} storage providers {len(ids)}",
            event="providers.deleted",
            requested=len(ids),
            removed=removed,
        )
        return True

    def set_active_counts(self, caller: str, counts: ActivePerRegion, context: CallContext | None = None) -> bool:
        context = self._context("set_active_counts", caller, context)
        if not guard_mutation("set_active_counts", caller, self._owner, context, reject=self.reject_unauthorized):
            return False
        with self._call(context):
            self._counters.set(counts)
        context.info(logger, "active counts replaced", event="active_counts.set")
        return True

    def upsert_price_snapshot(self, caller: str, snapshot: PriceSnapshot, context: CallContext | None = None) -> bool:
        context = self._context("upsert_price_snapshot", caller, context)
        if not guard_mutation("upsert_price_snapshot", caller, self._owner, context, reject=self.reject_unauthorized):
            return False
        with self._call(context):
            stored = self._snapshots.upsert(snapshot, context=context)
        if stored:
            context.info(
                logger,
                f"upsert_price_snapshot(): timestamp {snapshot.timestamp}",
                event="snapshot.upserted",
                timestamp=snapshot.timestamp,
            )
        return stored

    def delete_price_snapshots(self, caller: str, timestamps: Sequence[int], context: CallContext | None = None) -> bool:
        context = self._context("delete_price_snapshots", caller, context)
        if not guard_mutation("delete_price_snapshots", caller, self._owner, context, reject=self.reject_unauthorized):
            return False
        with self._call(context):
            removed = self._snapshots.delete_many(timestamps)
        context.info(
            logger,
            f"delete_price_snapshots(): timestamps {len(timestamps)}",
            event="snapshots.deleted",
            requested=len(timestamps),
            removed=removed,
        )
        return True

    # reads

    def list_providers(self) -> List[StorageProvider]:
        return self._providers.list_all()

    def get_active_counts(self) -> ActivePerRegion:
        return self._counters.get()

    def list_price_snapshots(self) -> List[PriceSnapshot]:
        return self._snapshots.list_all()

    def get_latest_price_snapshot(self) -> PriceSnapshot:
        return self._snapshots.get_latest()


__all__ = ["MarketRegistry"]
