"""FastAPI application exposing the FilMarket registry."""
from __future__ import annotations

import logging
import uuid
from typing import Callable, List

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import get_settings
from .schemas import (
    ActivePerRegion,
    MutationResult,
    PriceSnapshot,
    ProviderDeleteRequest,
    SnapshotDeleteRequest,
    StorageProvider,
)
from .services.errors import (
    RegistryAlreadyInitializedError,
    RegistryNotInitializedError,
    StateHostError,
    UnauthorizedCallerError,
)
from .services.logging import CallContext, call_log_store
from .services.market_registry import MarketRegistry
from .services.state import InMemoryStateHost, JsonFileStateHost, StateHost

logger = logging.getLogger(__name__)

app = FastAPI(title="FilMarket Registry", version="0.1.0")


def build_state_host() -> StateHost:
    settings = get_settings()
    if settings.state_path:
        return JsonFileStateHost(settings.state_path)
    return InMemoryStateHost()


state_host = build_state_host()
"""Module-level durable host shared by every request."""


def _load_registry() -> MarketRegistry:
    try:
        return MarketRegistry.load(state_host, reject_unauthorized=get_settings().reject_unauthorized)
    except RegistryNotInitializedError as exc:
        raise HTTPException(status_code=404, detail="Registry not initialized") from exc
    except StateHostError as exc:
        raise HTTPException(status_code=500, detail="Registry state unavailable") from exc


def _mutate(call: Callable[[MarketRegistry, CallContext], bool], caller: str) -> MutationResult:
    context = CallContext().with_caller(caller)
    registry = _load_registry()
    try:
        applied = call(registry, context)
    except UnauthorizedCallerError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except StateHostError as exc:
        raise HTTPException(status_code=500, detail="Failed to commit registry state") from exc
    return MutationResult(applied=applied, call_id=context.call_id)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    call_id = request.headers.get("x-correlation-id", uuid.uuid4().hex)
    context = CallContext(call_id=call_id)
    context.warning(
        logger,
        "request validation failed",
        event="request.validation_error",
        path=str(request.url.path),
        errors=exc.errors(),
    )
    return JSONResponse(status_code=422, content={"detail": exc.errors(), "call_id": call_id})


@app.post("/api/registry", status_code=201)
async def create_registry(caller: str = Header(..., alias="x-caller-id")) -> dict:
    context = CallContext().with_caller(caller)
    try:
        registry = MarketRegistry.create(state_host, caller, context=context)
    except RegistryAlreadyInitializedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except StateHostError as exc:
        raise HTTPException(status_code=500, detail="Failed to commit registry state") from exc
    return {"owner": registry.owner, "call_id": context.call_id}


@app.get("/api/registry")
async def get_registry() -> dict:
    return {"owner": _load_registry().owner}


@app.post("/api/providers", response_model=MutationResult)
async def upsert_providers(
    providers: List[StorageProvider], caller: str = Header(..., alias="x-caller-id")
) -> MutationResult:
    return _mutate(lambda registry, context: registry.upsert_providers(caller, providers, context), caller)


@app.post("/api/providers/delete", response_model=MutationResult)
async def delete_providers(
    request: ProviderDeleteRequest, caller: str = Header(..., alias="x-caller-id")
) -> MutationResult:
    return _mutate(lambda registry, context: registry.delete_providers(caller, request.ids, context), caller)


@app.get("/api/providers", response_model=List[StorageProvider])
async def list_providers() -> List[StorageProvider]:
    return _load_registry().list_providers()


@app.put("/api/active-counts", response_model=MutationResult)
async def set_active_counts(
    counts: ActivePerRegion, caller: str = Header(..., alias="x-caller-id")
) -> MutationResult:
    return _mutate(lambda registry, context: registry.set_active_counts(caller, counts, context), caller)


@app.get("/api/active-counts", response_model=ActivePerRegion)
async def get_active_counts() -> ActivePerRegion:
    return _load_registry().get_active_counts()


@app.post("/api/price-snapshots", response_model=MutationResult)
async def upsert_price_snapshot(
    snapshot: PriceSnapshot, caller: str = Header(..., alias="x-caller-id")
) -> MutationResult:
    if snapshot.is_empty:
        context = CallContext().with_caller(caller).with_operation("upsert_price_snapshot")
        context.warning(logger, "snapshot with sentinel timestamp rejected", event="snapshot.sentinel_timestamp")
        raise HTTPException(status_code=422, detail="timestamp 0 is reserved for an absent snapshot")
    return _mutate(lambda registry, context: registry.upsert_price_snapshot(caller, snapshot, context), caller)


@app.post("/api/price-snapshots/delete", response_model=MutationResult)
async def delete_price_snapshots(
    request: SnapshotDeleteRequest, caller: str = Header(..., alias="x-caller-id")
) -> MutationResult:
    return _mutate(
        lambda registry, context: registry.delete_price_snapshots(caller, request.timestamps, context), caller
    )


@app.get("/api/price-snapshots", response_model=List[PriceSnapshot])
async def list_price_snapshots() -> List[PriceSnapshot]:
    return _load_registry().list_price_snapshots()


@app.get("/api/price-snapshots/latest", response_model=PriceSnapshot)
async def get_latest_price_snapshot() -> PriceSnapshot:
    return _load_registry().get_latest_price_snapshot()


@app.get("/api/calls/{call_id}/logs")
async def get_call_logs(call_id: str) -> dict:
    """Operator-facing helper to inspect the recorded diagnostics of a call."""

    return {"call_id": call_id, "logs": call_log_store.get(call_id)}
