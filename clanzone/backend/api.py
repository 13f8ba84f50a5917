"""FastAPI endpoints for interaction sessions, zone claims and wipes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from .collaborators import Collaborators, create_http_collaborators
from .config import BackendSettings, load_settings
from .coordinator import ZoneClaimCoordinator
from .models import ClaimRecord
from .scheduler import AsyncioScheduler, Scheduler
from .security import verify_token
from .sessions import InteractionSessionTracker
from .store import ClaimStore, create_store

_LOGGER = logging.getLogger(__name__)

MAX_ACTOR_ID = 2**64 - 1


class SessionEvent(BaseModel):
    actor_id: int = Field(ge=0, le=MAX_ACTOR_ID)
    target_kind: str = Field(min_length=1, max_length=200)


class SessionEventResponse(BaseModel):
    changed: bool
    open_sessions: int


class ClaimRequest(BaseModel):
    actor_id: int = Field(ge=0, le=MAX_ACTOR_ID)
    position: tuple[float, float, float]


class ClaimResponse(BaseModel):
    status: str
    message: str
    zone_id: str | None = None
    erase_in_seconds: float | None = None


class ClaimRecordResponse(BaseModel):
    group: str
    zone_id: str
    actor_id: int
    position: tuple[float, float, float]
    radius: float
    claimed_at: float


class WipeResponse(BaseModel):
    cleared_claims: int
    reference_start: float


def _record_response(record: ClaimRecord) -> ClaimRecordResponse:
    return ClaimRecordResponse(
        group=record.group,
        zone_id=record.zone_id,
        actor_id=record.actor_id,
        position=record.position,
        radius=record.radius,
        claimed_at=record.claimed_at,
    )


def create_app(
    store: ClaimStore | None = None,
    collaborators: Collaborators | None = None,
    scheduler: Scheduler | None = None,
    settings: BackendSettings | None = None,
) -> FastAPI:
    local_settings = settings if settings is not None else load_settings()
    claim_store = store if store is not None else create_store(local_settings.database_url)
    local_scheduler = scheduler if scheduler is not None else AsyncioScheduler()

    bridge_client: httpx.AsyncClient | None = None
    if collaborators is None:
        bridge_client = httpx.AsyncClient(
            base_url=local_settings.bridge_url,
            timeout=local_settings.collaborator_timeout,
        )
        collaborators = create_http_collaborators(bridge_client, prompt_label=local_settings.prompt_label)

    coordinator = ZoneClaimCoordinator(
        store=claim_store,
        collaborators=collaborators,
        scheduler=local_scheduler,
        policy=local_settings.policy,
        permission_key=local_settings.permission_key,
        collaborator_timeout=local_settings.collaborator_timeout,
        wipe_time=local_settings.wipe_time,
    )
    tracker = InteractionSessionTracker(
        prompts=collaborators.prompts,
        scheduler=local_scheduler,
        target_kinds=local_settings.target_kinds,
        command=local_settings.confirm_command,
        prompt_delay=local_settings.prompt_delay,
        is_visible=coordinator.prompt_visible,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await coordinator.start()
        try:
            yield
        finally:
            coordinator.shutdown()
            if isinstance(local_scheduler, AsyncioScheduler):
                await local_scheduler.shutdown()
            await tracker.on_shutdown()
            if bridge_client is not None:
                await bridge_client.aclose()

    app = FastAPI(title="Clan Safe Zone API", version="1.0.0", lifespan=lifespan)
    app.state.coordinator = coordinator
    app.state.tracker = tracker

    def require_host(x_host_token: str = Header(default="")) -> None:
        expected_hash = local_settings.host_token_hash
        if expected_hash is None:
            return
        if not x_host_token or not verify_token(x_host_token, expected_hash, local_settings.server_salt):
            _LOGGER.warning("Rejected request with invalid host token")
            raise HTTPException(status_code=401, detail="Invalid host token")

    @app.post("/api/sessions/open", response_model=SessionEventResponse, dependencies=[Depends(require_host)])
    async def open_session(payload: SessionEvent) -> SessionEventResponse:
        changed = await tracker.on_session_open(payload.actor_id, payload.target_kind)
        return SessionEventResponse(changed=changed, open_sessions=len(tracker.open_sessions))

    @app.post("/api/sessions/close", response_model=SessionEventResponse, dependencies=[Depends(require_host)])
    async def close_session(payload: SessionEvent) -> SessionEventResponse:
        changed = await tracker.on_session_close(payload.actor_id, payload.target_kind)
        return SessionEventResponse(changed=changed, open_sessions=len(tracker.open_sessions))

    @app.post("/api/claims", response_model=ClaimResponse, dependencies=[Depends(require_host)])
    async def request_claim(payload: ClaimRequest) -> ClaimResponse:
        outcome = await coordinator.request_claim(payload.actor_id, payload.position)
        return ClaimResponse(
            status=outcome.status.value,
            message=outcome.message,
            zone_id=outcome.zone_id,
            erase_in_seconds=outcome.erase_in_seconds,
        )

    @app.get("/api/claims", response_model=list[ClaimRecordResponse], dependencies=[Depends(require_host)])
    async def list_claims() -> list[ClaimRecordResponse]:
        return [_record_response(record) for record in coordinator.claims()]

    @app.get("/api/claims/{group}", response_model=ClaimRecordResponse, dependencies=[Depends(require_host)])
    async def get_claim(group: str) -> ClaimRecordResponse:
        record = coordinator.claim_for(group)
        if record is None:
            raise HTTPException(status_code=404, detail="No claim recorded for this group")
        return _record_response(record)

    @app.post("/api/wipes", response_model=WipeResponse, dependencies=[Depends(require_host)])
    async def new_wipe() -> WipeResponse:
        cleared = await coordinator.on_new_wipe()
        return WipeResponse(cleared_claims=cleared, reference_start=coordinator.reference_start)

    return app
