"""
FastAPI endpoints for the focus companion.

Browser bridges post raw activity events here; the UI polls /state.
Endpoints never run a tick cycle directly - they publish events or request
a tick, and the single-flight scheduler does the rest.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional
from datetime import datetime
import logging

from ...services.focus_engine.companion import FocusCompanion
from ...services.focus_engine.config_store import public_view
from ...services.focus_engine.events import CompanionEvent, EventType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/companion", tags=["companion"])


def get_companion(request: Request) -> FocusCompanion:
    companion = getattr(request.app.state, "companion", None)
    if companion is None:
        raise HTTPException(status_code=503, detail="Focus companion is not running")
    return companion


# --- REQUEST/RESPONSE MODELS ---

class ActivityEvent(BaseModel):
    """Raw activity notification from a browser bridge or the tab tracker"""
    type: EventType = Field(..., description="Event kind, e.g. tab_switched or page_context")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Event-specific data")
    timestamp: Optional[float] = Field(None, description="Event time in epoch seconds (defaults to now)")


class EventAccepted(BaseModel):
    accepted: bool = True
    queued_events: int = Field(..., description="Events waiting in the channel")


class TickRequest(BaseModel):
    reason: str = Field("manual", description="Why the tick was requested", max_length=64)


class TickResponse(BaseModel):
    started: bool = Field(..., description="True if a cycle started now, False if coalesced")
    scheduler: str = Field(..., description="Scheduler state after the request")


class ModeRequest(BaseModel):
    mode: Literal["focus", "refocus", "calm", "auto"] = Field(..., description="Pinned mode or auto")


class VoiceCommandRequest(BaseModel):
    transcript: str = Field(..., description="Recognized utterance", min_length=1, max_length=200)


class VoiceCommandResponse(BaseModel):
    command: Optional[str] = Field(None, description="Recognized command, if any")


class CompanionState(BaseModel):
    label: str
    is_playing: bool
    mode: Optional[str] = None
    status: str = ""
    message: str = ""
    raw: Dict[str, Any]
    signals: Optional[Dict[str, Any]] = None
    manual_override: Dict[str, Any]
    music_enabled: bool
    voice_muted: bool
    music: Dict[str, Any]
    scheduler: str
    timestamp: datetime = Field(default_factory=datetime.now)


# --- ENDPOINTS ---

@router.get("/state", response_model=CompanionState)
async def get_state(request: Request):
    """Current label, playback and raw activity for UI polling."""
    return CompanionState(**get_companion(request).get_state())


@router.post("/events", response_model=EventAccepted, status_code=202)
async def post_event(event: ActivityEvent, request: Request):
    companion = get_companion(request)
    companion.publish(CompanionEvent(type=event.type, payload=event.payload, at=event.timestamp))
    logger.debug(f"Event accepted: {event.type.value}")
    return EventAccepted(queued_events=companion.events.qsize())


@router.post("/tick", response_model=TickResponse)
async def request_tick(body: TickRequest, request: Request):
    companion = get_companion(request)
    started = companion.request_tick(body.reason)
    return TickResponse(started=started, scheduler=companion.scheduler.state.value)


@router.post("/mode")
async def set_mode(body: ModeRequest, request: Request):
    companion = get_companion(request)
    companion.set_manual_mode(body.mode)
    return {"success": True, "mode": body.mode}


@router.post("/music/play")
async def play_music(request: Request):
    get_companion(request).resume_music()
    return {"success": True}


@router.post("/music/pause")
async def pause_music(request: Request):
    get_companion(request).pause_music()
    return {"success": True}


@router.post("/voice-command", response_model=VoiceCommandResponse)
async def voice_command(body: VoiceCommandRequest, request: Request):
    command = get_companion(request).handle_voice_command(body.transcript)
    return VoiceCommandResponse(command=command)


@router.get("/config")
async def get_config(request: Request):
    config = await get_companion(request).config_store.get()
    return public_view(config)


@router.put("/config")
async def update_config(changes: Dict[str, Any], request: Request):
    """Update user settings. Unknown keys are rejected."""
    companion = get_companion(request)
    try:
        config = await companion.config_store.update(changes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f"Config updated: {', '.join(sorted(changes))}")
    return public_view(config)


@router.get("/health")
async def health_check(request: Request):
    """Check if the companion loop is available"""
    companion = getattr(request.app.state, "companion", None)
    if companion is None:
        return {"status": "unavailable", "reason": "FocusCompanion not initialized"}
    return {
        "status": "healthy",
        "scheduler": companion.scheduler.state.value,
        "cycles": companion.scheduler.stats.cycles_started,
        "music": companion.dispatcher.music.status().get("adapter"),
    }
