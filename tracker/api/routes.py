import asyncio
import json
from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from tracker.api.schemas import (
    ClearHistoryResponse,
    InferenceHistoryRead,
    ListingRead,
    RefreshStatusRead,
    RescheduleRequest,
    RescheduleResponse,
    TriggerResponse,
)
from tracker.core.config import Config
from tracker.core.engine import RefreshEngine
from tracker.core.errors import PersistenceError
from tracker.utils.logger import get_logger

log = get_logger(__name__)

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)

MANUAL_TRIGGER_LIMIT = Config.get("api", "manual_trigger_limit", default="6/minute")
EVENT_KEEPALIVE_SECONDS = 15


def get_engine(request: Request) -> RefreshEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Refresh engine not initialised")
    return engine


@router.post("/refresh/trigger", response_model=TriggerResponse)
@limiter.limit(MANUAL_TRIGGER_LIMIT)
async def trigger_refresh(request: Request, engine: RefreshEngine = Depends(get_engine)):
    result = await engine.scheduler.on_manual_trigger()
    return result.to_dict()


@router.post("/refresh/reschedule", response_model=RescheduleResponse)
def reschedule_refresh(payload: RescheduleRequest, engine: RefreshEngine = Depends(get_engine)):
    try:
        next_time = engine.scheduler.on_settings_changed(payload.minutes)
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {"success": True, "next_refresh_time": next_time.isoformat()}


@router.get("/refresh/status", response_model=RefreshStatusRead)
def refresh_status(engine: RefreshEngine = Depends(get_engine)):
    return engine.status_store.as_dict()


@router.post("/refresh/errors/clear", response_model=RefreshStatusRead)
def clear_refresh_errors(engine: RefreshEngine = Depends(get_engine)):
    return engine.status_store.clear_errors().to_dict()


@router.get("/listings", response_model=List[ListingRead])
def list_listings(engine: RefreshEngine = Depends(get_engine)):
    try:
        listings = engine.repository.list_listings()
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return [listing.to_dict() for listing in listings]


@router.get("/inference/history", response_model=InferenceHistoryRead)
def inference_history(engine: RefreshEngine = Depends(get_engine)):
    history = engine.inference.history
    return {"stats": history.stats(), "calls": [call.to_dict() for call in history.entries()]}


@router.post("/inference/history/clear", response_model=ClearHistoryResponse)
def clear_inference_history(engine: RefreshEngine = Depends(get_engine)):
    cleared = engine.inference.history.clear()
    log.info(f"Cleared {cleared} inference history entries")
    return {"success": True, "cleared": cleared}


@router.get("/refresh/events")
async def refresh_events(request: Request, engine: RefreshEngine = Depends(get_engine)):
    notifier = engine.notifier
    queue = notifier.subscribe()

    async def stream() -> AsyncIterator[str]:
        try:
            while not await request.is_disconnected():
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=EVENT_KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: {event.type}\ndata: {json.dumps(event.to_dict())}\n\n"
        finally:
            notifier.unsubscribe(queue)
            log.debug("Event stream subscriber disconnected")

    return StreamingResponse(stream(), media_type="text/event-stream")
