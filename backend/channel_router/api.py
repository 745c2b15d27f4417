"""FastAPI backend for MIDI channel-to-instrument routing."""

import asyncio
import io
import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass, field

import mido
from fastapi import Body, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from channel_router.channel_extractor import timeline_from_midi
from channel_router.events import EventBus
from channel_router.log_events import capture_logs, log_event
from channel_router.models import RoutingMode
from channel_router.presets import PresetLibrary
from channel_router.routing_store import RoutingStore
from channel_router.schema import (
    MAX_UPLOAD_BYTES,
    error_body,
    is_allowed_content_type,
    is_allowed_extension,
    is_safe_session_id,
    parse_instruments,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="MIDI Channel Routing API", version="0.1.0")


async def _http_exception_handler(request, exc: HTTPException):
    """Return consistent error JSON: { detail, code? }."""
    if isinstance(exc.detail, dict) and "detail" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc.detail)})


app.add_exception_handler(HTTPException, _http_exception_handler)

# CORS: read from env, localhost only by default
_cors_origins_env = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
_cors_origins = [origin.strip() for origin in _cors_origins_env.split(",") if origin.strip()]
if "*" in _cors_origins:
    _cors_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    logger.warning("CORS_ORIGINS contains '*', falling back to localhost only")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SESSION_TTL_SECONDS = int(os.getenv("ROUTING_SESSION_TTL", "3600"))
MIDI_PARSE_TIMEOUT_S = 30.0

# One preset collection shared by every session
preset_library = PresetLibrary()


@dataclass
class RoutingSession:
    store: RoutingStore
    bus: EventBus
    filename: str
    touched: float = field(default_factory=time.monotonic)


_sessions: dict[str, RoutingSession] = {}
_sessions_lock = threading.Lock()


def _prune_sessions() -> None:
    cutoff = time.monotonic() - SESSION_TTL_SECONDS
    with _sessions_lock:
        for sid in [sid for sid, s in _sessions.items() if s.touched < cutoff]:
            del _sessions[sid]
            logger.info("Routing session expired: %s", sid)


def _get_session(session_id: str) -> RoutingSession:
    if not is_safe_session_id(session_id):
        raise HTTPException(400, detail=error_body("Invalid session id.", code="INVALID_SESSION_ID"))
    with _sessions_lock:
        session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(404, detail=error_body("Routing session not found or expired.", code="NOT_FOUND"))
    session.touched = time.monotonic()
    return session


def _session_response(session_id: str, session: RoutingSession, logs: list[dict] | None = None) -> dict:
    body = {"session_id": session_id, "routing": session.store.snapshot()}
    if logs is not None:
        body["logs"] = logs
    return body


def _build_store(
    midi: mido.MidiFile, devices: list, mode: RoutingMode, bus: EventBus
) -> tuple[RoutingStore, list[dict]]:
    """Extract and route off the event loop. Log capture is bound to the calling thread."""
    store = RoutingStore(bus, presets=preset_library)
    store.mode = mode
    with capture_logs("route") as route_logs:
        store.initialize(timeline_from_midi(midi), devices)
    return store, route_logs


@app.post("/api/routing/sessions")
async def create_session(
    file: UploadFile = File(...),
    instruments: str = Form("[]"),
    mode: str = Form("manual"),
):
    if not is_allowed_extension(file.filename or ""):
        raise HTTPException(
            400,
            detail=error_body("Only .mid, .midi files accepted", code="INVALID_EXTENSION"),
        )
    if not is_allowed_content_type(file.content_type):
        raise HTTPException(
            415,
            detail=error_body(
                "Content-Type not allowed for upload. Use audio/midi or application/octet-stream.",
                code="INVALID_CONTENT_TYPE",
            ),
        )
    try:
        routing_mode = RoutingMode((mode or "manual").strip().lower())
    except ValueError:
        raise HTTPException(400, detail=error_body(f"Unknown routing mode: {mode}", code="INVALID_MODE"))
    if routing_mode == RoutingMode.PRESET:
        raise HTTPException(
            400,
            detail=error_body("Sessions start in manual or auto mode; apply a preset afterwards.", code="INVALID_MODE"),
        )
    try:
        devices = parse_instruments(instruments)
    except ValueError as e:
        raise HTTPException(400, detail=error_body("Invalid instrument list.", code="INVALID_INSTRUMENTS", debug=str(e)))

    content = b""
    chunk_size = 1024 * 1024
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        content += chunk
        if len(content) > MAX_UPLOAD_BYTES:
            raise HTTPException(
                413,
                detail=error_body(
                    f"File exceeds maximum size ({MAX_UPLOAD_BYTES // (1024 * 1024)} MiB).",
                    code="PAYLOAD_TOO_LARGE",
                ),
            )
    logs = [log_event("info", "upload", "File received")]

    try:
        midi = await asyncio.wait_for(
            asyncio.to_thread(mido.MidiFile, file=io.BytesIO(content)),
            timeout=MIDI_PARSE_TIMEOUT_S,
        )
    except asyncio.TimeoutError:
        raise HTTPException(
            400,
            detail=error_body("MIDI file parsing timed out. File may be corrupt or too complex.", code="MIDI_PARSE_TIMEOUT"),
        )
    except (OSError, EOFError, ValueError, KeyError, IndexError) as e:
        raise HTTPException(400, detail=error_body("Could not parse MIDI file.", code="INVALID_MIDI", debug=str(e)))

    _prune_sessions()
    bus = EventBus()
    store, route_logs = await asyncio.to_thread(_build_store, midi, devices, routing_mode, bus)
    logs.append(log_event("info", "extract", f"{len(store.channels)} channels extracted"))
    logs.extend(route_logs)

    session_id = uuid.uuid4().hex
    session = RoutingSession(store=store, bus=bus, filename=file.filename or "input.mid")
    with _sessions_lock:
        _sessions[session_id] = session

    body = _session_response(session_id, session, logs)
    body["channels"] = [c.to_dict() for c in store.channels]
    body["instruments"] = [i.to_dict() for i in store.instruments]
    return body


@app.get("/api/routing/sessions/{session_id}")
def get_routing(session_id: str):
    session = _get_session(session_id)
    body = _session_response(session_id, session)
    body["channels"] = [
        dict(c.to_dict(), content=session.store.analyze_channel_content(c.number)) for c in session.store.channels
    ]
    return body


@app.put("/api/routing/sessions/{session_id}/instruments")
def replace_instruments(session_id: str, instruments: list = Body(...)):
    session = _get_session(session_id)
    try:
        devices = parse_instruments(instruments)
    except ValueError as e:
        raise HTTPException(400, detail=error_body("Invalid instrument list.", code="INVALID_INSTRUMENTS", debug=str(e)))
    session.store.set_instruments(devices)
    return {"instruments": [i.to_dict() for i in devices]}


@app.post("/api/routing/sessions/{session_id}/assign")
def assign_channel(session_id: str, channel: int = Body(...), instrumentId: str = Body(...)):
    session = _get_session(session_id)
    with capture_logs("assign") as logs:
        ok = session.store.assign(channel, instrumentId)
    if not ok:
        raise HTTPException(
            400,
            detail=error_body(f"Cannot assign channel {channel} to {instrumentId}.", code="INVALID_REFERENCE"),
        )
    return _session_response(session_id, session, logs)


@app.delete("/api/routing/sessions/{session_id}/assign/{channel}")
def unassign_channel(session_id: str, channel: int):
    session = _get_session(session_id)
    if not session.store.unassign(channel):
        raise HTTPException(404, detail=error_body(f"Channel {channel} is not assigned.", code="NOT_ASSIGNED"))
    return _session_response(session_id, session)


@app.post("/api/routing/sessions/{session_id}/auto")
def auto_route(session_id: str, minScore: float | None = Body(None, embed=True)):
    if minScore is not None and not 0.0 <= minScore <= 1.0:
        raise HTTPException(400, detail=error_body("minScore must be between 0 and 1.", code="INVALID_MIN_SCORE"))
    session = _get_session(session_id)
    with capture_logs("auto-route") as logs:
        count = session.store.auto_route(minScore)
    logs.insert(0, log_event("info", "auto-route", f"{count} channels routed"))
    return _session_response(session_id, session, logs)


@app.post("/api/routing/sessions/{session_id}/clear")
def clear_routing(session_id: str):
    session = _get_session(session_id)
    session.store.clear_all()
    return _session_response(session_id, session)


@app.get("/api/routing/sessions/{session_id}/presets")
def list_presets(session_id: str):
    session = _get_session(session_id)
    return [p.to_dict() for p in session.store.list_presets()]


@app.post("/api/routing/sessions/{session_id}/presets")
def create_preset(session_id: str, name: str = Body(..., embed=True)):
    name = (name or "").strip()
    if not name:
        raise HTTPException(400, detail=error_body("Preset name is required.", code="INVALID_PRESET_NAME"))
    session = _get_session(session_id)
    preset = session.store.create_preset(name[:200])
    return preset.to_dict()


@app.post("/api/routing/sessions/{session_id}/presets/{preset_id}/apply")
def apply_preset(session_id: str, preset_id: str):
    session = _get_session(session_id)
    with capture_logs("preset") as logs:
        ok = session.store.apply_preset(preset_id)
    if not ok:
        raise HTTPException(404, detail=error_body("Preset not found.", code="PRESET_NOT_FOUND"))
    return _session_response(session_id, session, logs)


@app.delete("/api/routing/sessions/{session_id}/presets/{preset_id}")
def delete_preset(session_id: str, preset_id: str):
    session = _get_session(session_id)
    if not session.store.delete_preset(preset_id):
        raise HTTPException(404, detail=error_body("Preset not found.", code="PRESET_NOT_FOUND"))
    return {"deleted": preset_id}


@app.get("/api/routing/sessions/{session_id}/export")
def export_routing(session_id: str):
    return _get_session(session_id).store.export()


@app.post("/api/routing/sessions/{session_id}/import")
def import_routing(session_id: str, config: dict = Body(...)):
    session = _get_session(session_id)
    with capture_logs("import") as logs:
        ok = session.store.import_config(config)
    if not ok:
        raise HTTPException(400, detail=error_body("Invalid routing configuration.", code="INVALID_CONFIG"))
    return _session_response(session_id, session, logs)


@app.get("/health")
async def health():
    with _sessions_lock:
        active = len(_sessions)
    return {
        "status": "ok",
        "active_sessions": active,
        "max_upload_bytes": MAX_UPLOAD_BYTES,
        "presets": len(preset_library.list_presets()),
    }
