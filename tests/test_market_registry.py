"""Tests for the registry aggregate and its state hosts."""

import os
from decimal import Decimal

import pytest

from filmarket.schemas import ActivePerRegion, PriceSnapshot, RegistryState, StorageProvider
from filmarket.services.errors import (
    RegistryAlreadyInitializedError,
    RegistryNotInitializedError,
    StateHostError,
    UnauthorizedCallerError,
)
from filmarket.services.logging import CallContext, call_log_store
from filmarket.services.market_registry import MarketRegistry
from filmarket.services.state import InMemoryStateHost, JsonFileStateHost

OWNER = "carol.near"
INTRUDER = "mallory.near"


class FlakyStateHost(InMemoryStateHost):
    """Host whose next commit can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_next_write = False

    def write(self, state: RegistryState) -> None:
        if self.fail_next_write:
            self.fail_next_write = False
            raise StateHostError("disk full")
        super().write(state)


@pytest.fixture(autouse=True)
def _reset_logs() -> None:
    call_log_store.clear()


@pytest.fixture
def registry() -> MarketRegistry:
    return MarketRegistry.create(InMemoryStateHost(), OWNER)


def _snapshot(timestamp: int, price: str = "1") -> PriceSnapshot:
    return PriceSnapshot(timestamp=timestamp, global_price=price, price_europe=price, fil_fiat_rate="5.1")


def _reads(registry: MarketRegistry) -> tuple:
    return (
        registry.list_providers(),
        registry.get_active_counts(),
        registry.list_price_snapshots(),
        registry.get_latest_price_snapshot(),
    )


def test_create_sets_owner_and_empty_state(registry: MarketRegistry) -> None:
    assert registry.owner == OWNER
    assert registry.list_providers() == []
    assert registry.list_price_snapshots() == []
    assert registry.get_active_counts() == ActivePerRegion()
    assert registry.get_latest_price_snapshot() == PriceSnapshot()


def test_create_refuses_existing_state() -> None:
    host = InMemoryStateHost()
    MarketRegistry.create(host, OWNER)

    with pytest.raises(RegistryAlreadyInitializedError):
        MarketRegistry.create(host, INTRUDER)

    assert MarketRegistry.load(host).owner == OWNER


def test_load_requires_construction() -> None:
    with pytest.raises(RegistryNotInitializedError):
        MarketRegistry.load(InMemoryStateHost())


def test_upsert_then_delete_scenario(registry: MarketRegistry) -> None:
    registry.upsert_providers(
        OWNER,
        [
            StorageProvider(id="p1", region="europe", power=10, price=1),
            StorageProvider(id="p2", region="asia", power=20, price=2),
        ],
    )
    registry.delete_providers(OWNER, ["p2"])

    assert registry.list_providers() == [StorageProvider(id="p1", region="europe", power=10, price=1)]


def test_region_survives_later_upserts(registry: MarketRegistry) -> None:
    registry.upsert_providers(OWNER, [StorageProvider(id="p1", region="north_america", power=1, price=1)])
    registry.upsert_providers(OWNER, [StorageProvider(id="p1", region="asia", power=5, price="0.5")])

    [provider] = registry.list_providers()
    assert provider.region == "north_america"
    assert provider.power == Decimal(5)
    assert provider.price == Decimal("0.5")


def test_delete_unknown_provider_is_noop(registry: MarketRegistry) -> None:
    registry.upsert_providers(OWNER, [StorageProvider(id="p1", region="europe", power=10, price=1)])
    before = registry.list_providers()

    assert registry.delete_providers(OWNER, ["nope"]) is True

    assert registry.list_providers() == before


def test_latest_pointer_is_last_write_wins(registry: MarketRegistry) -> None:
    registry.upsert_price_snapshot(OWNER, _snapshot(5, price="5"))
    registry.upsert_price_snapshot(OWNER, _snapshot(3, price="3"))

    latest = registry.get_latest_price_snapshot()
    assert latest.timestamp == 3
    assert latest == _snapshot(3, price="3")


def test_deleted_latest_reads_as_sentinel(registry: MarketRegistry) -> None:
    registry.upsert_price_snapshot(OWNER, _snapshot(8))

    registry.delete_price_snapshots(OWNER, [8])

    assert registry.get_latest_price_snapshot().is_empty
    assert registry.to_state().latest_timestamp == 8


def test_active_counts_round_trip(registry: MarketRegistry) -> None:
    counts = ActivePerRegion(europe=3, asia=24, north_america=12, other=45)

    registry.set_active_counts(OWNER, counts)

    assert registry.get_active_counts() == counts


def test_non_owner_mutations_change_nothing(registry: MarketRegistry) -> None:
    registry.upsert_providers(OWNER, [StorageProvider(id="p1", region="europe", power=10, price=1)])
    registry.upsert_price_snapshot(OWNER, _snapshot(1))
    registry.set_active_counts(OWNER, ActivePerRegion(europe=1))
    before = _reads(registry)
    context = CallContext(call_id="call-intruder")

    results = [
        registry.upsert_providers(INTRUDER, [StorageProvider(id="p9", region="asia")], context),
        registry.delete_providers(INTRUDER, ["p1"], context),
        registry.set_active_counts(INTRUDER, ActivePerRegion(asia=9), context),
        registry.upsert_price_snapshot(INTRUDER, _snapshot(2), context),
        registry.delete_price_snapshots(INTRUDER, [1], context),
    ]

    assert results == [False] * 5
    assert _reads(registry) == before
    logs = call_log_store.get("call-intruder")
    assert [entry["extra"]["event"] for entry in logs] == ["access.denied"] * 5
    assert all(entry["extra"]["rejected_caller"] == INTRUDER for entry in logs)


def test_strict_mode_raises_and_changes_nothing() -> None:
    registry = MarketRegistry.create(InMemoryStateHost(), OWNER, reject_unauthorized=True)

    with pytest.raises(UnauthorizedCallerError):
        registry.upsert_providers(INTRUDER, [StorageProvider(id="p1", region="asia")])

    assert registry.list_providers() == []


def test_committed_state_is_visible_to_next_load() -> None:
    host = InMemoryStateHost()
    registry = MarketRegistry.create(host, OWNER)
    registry.upsert_providers(OWNER, [StorageProvider(id="p1", region="europe", power=10, price="0.001")])
    registry.upsert_price_snapshot(OWNER, _snapshot(12))

    reloaded = MarketRegistry.load(host)

    assert reloaded.list_providers() == registry.list_providers()
    assert reloaded.get_latest_price_snapshot().timestamp == 12


def test_faulted_commit_restores_previous_state() -> None:
    host = FlakyStateHost()
    registry = MarketRegistry.create(host, OWNER)
    registry.upsert_providers(OWNER, [StorageProvider(id="p1", region="europe", power=10, price=1)])
    before = _reads(registry)

    host.fail_next_write = True
    with pytest.raises(StateHostError):
        registry.upsert_providers(OWNER, [StorageProvider(id="p2", region="asia", power=1, price=1)])

    assert _reads(registry) == before
    assert MarketRegistry.load(host).list_providers() == before[0]


def test_json_file_host_preserves_precision(tmp_path) -> None:
    host = JsonFileStateHost(tmp_path / "state" / "registry.json")
    registry = MarketRegistry.create(host, OWNER)
    registry.upsert_providers(
        OWNER,
        [StorageProvider(id="f01234", region="other", power="1125899906842624", price="0.000000012345678901")],
    )

    reloaded = MarketRegistry.load(JsonFileStateHost(tmp_path / "state" / "registry.json"))

    [provider] = reloaded.list_providers()
    assert provider.power == Decimal("1125899906842624")
    assert provider.price == Decimal("0.000000012345678901")
    with pytest.raises(RegistryAlreadyInitializedError):
        MarketRegistry.create(host, OWNER)


def test_json_file_host_rejects_corrupt_state(tmp_path) -> None:
    path = tmp_path / "registry.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StateHostError):
        JsonFileStateHost(path).read()


def test_json_file_host_failed_commit_keeps_previous_file(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "registry.json"
    host = JsonFileStateHost(path)
    host.write(RegistryState(owner=OWNER))
    committed = path.read_text(encoding="utf-8")

    def failing_replace(src, dst) -> None:
        raise OSError("device busy")

    monkeypatch.setattr(os, "replace", failing_replace)
    with pytest.raises(StateHostError):
        host.write(RegistryState(owner=INTRUDER))

    assert path.read_text(encoding="utf-8") == committed
    assert [entry.name for entry in tmp_path.iterdir()] == ["registry.json"]
