"""Shared validation and error response schema for the routing API."""

import json
import re

from channel_router.models import InstrumentDescriptor

# Allowlist: only these extensions and content-types for uploads
ALLOWED_MIDI_EXTENSIONS = (".mid", ".midi")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB
ALLOWED_UPLOAD_CONTENT_TYPES = frozenset(
    {"audio/midi", "application/octet-stream", "audio/x-midi"}
)
# session_id: 32-char hex (uuid4.hex)
SESSION_ID_PATTERN = re.compile(r"^[a-f0-9]{32}$")
MAX_INSTRUMENTS = 128


def error_body(message: str, code: str | None = None, debug: str | None = None) -> dict:
    """Build consistent error JSON: { detail, code?, debug? }."""
    body: dict = {"detail": message}
    if code:
        body["code"] = code
    if debug:
        body["debug"] = debug
    return body


def is_safe_session_id(value: str) -> bool:
    """True if value is a valid session id (32 hex chars)."""
    return bool(value and SESSION_ID_PATTERN.fullmatch(value))


def is_allowed_extension(filename: str) -> bool:
    fn = (filename or "").strip().lower()
    return any(fn.endswith(ext) for ext in ALLOWED_MIDI_EXTENSIONS)


def is_allowed_content_type(content_type: str | None) -> bool:
    """True if Content-Type is allowed for MIDI upload (or missing)."""
    if not content_type:
        return True
    main = content_type.split(";")[0].strip().lower()
    return main in ALLOWED_UPLOAD_CONTENT_TYPES


def parse_instruments(raw: str | list | None) -> list[InstrumentDescriptor]:
    """
    Parse the device list sent by the client (JSON text or already-decoded list).
    Raises ValueError on malformed input or duplicate ids.
    """
    if raw is None or raw == "":
        return []
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, list):
        raise ValueError("instruments must be a JSON array")
    if len(data) > MAX_INSTRUMENTS:
        raise ValueError(f"At most {MAX_INSTRUMENTS} instruments accepted")

    instruments = [InstrumentDescriptor.from_dict(item) for item in data]
    seen: set[str] = set()
    for inst in instruments:
        if inst.id in seen:
            raise ValueError(f"Duplicate instrument id: {inst.id}")
        seen.add(inst.id)
    return instruments
