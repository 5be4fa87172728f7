"""Pydantic schemas shared across the FilMarket registry."""
from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Region = Literal["north_america", "europe", "asia", "other"]

SENTINEL_TIMESTAMP = 0


class StorageProvider(BaseModel):
    """One provider's advertised listing. ``region`` is fixed by the first write."""

    id: str
    region: Region = "other"
    power: Decimal = Decimal(0)
    price: Decimal = Decimal(0)
    price_fil: Optional[str] = Field(
        default=None, description="Free-form FIL price quote, e.g. \"20 nanoFIL\"."
    )


class PriceSnapshot(BaseModel):
    """Point-in-time observation of prices and power across regions."""

    price_north_america: Decimal = Decimal(0)
    price_europe: Decimal = Decimal(0)
    price_asia: Decimal = Decimal(0)
    price_other: Decimal = Decimal(0)
    global_price: Decimal = Decimal(0)
    fil_fiat_rate: Decimal = Decimal(0)
    network_power: Decimal = Decimal(0)
    timestamp: int = Field(default=SENTINEL_TIMESTAMP, ge=0)

    @property
    def is_empty(self) -> bool:
        return self.timestamp == SENTINEL_TIMESTAMP


class ActivePerRegion(BaseModel):
    """Number of active providers per region."""

    north_america: int = 0
    europe: int = 0
    asia: int = 0
    other: int = 0


class RegistryState(BaseModel):
    """Everything the durable host persists between calls."""

    owner: str
    providers: List[StorageProvider] = Field(default_factory=list)
    snapshots: List[PriceSnapshot] = Field(default_factory=list)
    latest_timestamp: int = SENTINEL_TIMESTAMP
    active_per_region: ActivePerRegion = Field(default_factory=ActivePerRegion)


class ProviderDeleteRequest(BaseModel):
    ids: List[str]


class SnapshotDeleteRequest(BaseModel):
    timestamps: List[int]


class MutationResult(BaseModel):
    applied: bool
    call_id: str
