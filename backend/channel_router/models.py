"""Data models for channel summaries, instruments, assignments, conflicts and presets."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from channel_router.config import READY_STATE


def now_ms() -> int:
    return int(time.time() * 1000)


class RoutingMode(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    PRESET = "preset"


@dataclass
class NoteSample:
    pitch: int
    velocity: int
    duration: float = 0
    time: float = 0

    def to_dict(self) -> dict:
        return {"pitch": self.pitch, "velocity": self.velocity, "duration": self.duration, "time": self.time}


@dataclass
class NoteRange:
    """Inclusive MIDI note span. Starts degenerate (127, 0) and widens as notes are seen."""
    min: int = 127
    max: int = 0

    def widen(self, value: int) -> None:
        self.min = min(self.min, value)
        self.max = max(self.max, value)

    @property
    def span(self) -> int:
        return self.max - self.min

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["NoteRange"]:
        if data is None:
            return None
        if isinstance(data, NoteRange):
            return data
        try:
            low, high = int(data["min"]), int(data["max"])
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"noteRange needs integer min and max, got {data!r}")
        return cls(min=low, max=high)


@dataclass
class VelocityStats:
    min: int = 127
    max: int = 0
    avg: int = 0

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "avg": self.avg}


@dataclass
class ChannelSummary:
    number: int
    name: str
    instrument_hint: str = "Unknown"
    program: int = 0
    note_count: int = 0
    notes: list[NoteSample] = field(default_factory=list)
    note_range: NoteRange = field(default_factory=NoteRange)
    velocity: VelocityStats = field(default_factory=VelocityStats)

    def to_dict(self, include_notes: bool = False) -> dict:
        out = {
            "number": self.number,
            "name": self.name,
            "instrumentHint": self.instrument_hint,
            "program": self.program,
            "noteCount": self.note_count,
            "noteRange": self.note_range.to_dict(),
            "velocity": self.velocity.to_dict(),
        }
        if include_notes:
            out["notes"] = [n.to_dict() for n in self.notes]
        return out


@dataclass
class InstrumentDescriptor:
    """Point-in-time snapshot of a connected device, as reported by device discovery."""
    id: str
    name: str
    type: Optional[str] = None
    note_range: Optional[NoteRange] = None
    supports_velocity: bool = False
    state: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.state == READY_STATE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "noteRange": self.note_range.to_dict() if self.note_range else None,
            "supportsVelocity": self.supports_velocity,
            "state": self.state,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InstrumentDescriptor":
        if not isinstance(data, dict):
            raise ValueError(f"Instrument must be an object, got {type(data).__name__}")
        inst_id = data.get("id")
        if inst_id is None or str(inst_id) == "":
            raise ValueError("Instrument is missing an id")
        supports = data.get("supportsVelocity", data.get("supports_velocity"))
        if supports is None:
            supports = False
        if not isinstance(supports, bool):
            raise ValueError(f"supportsVelocity must be true or false, got {supports!r}")
        return cls(
            id=str(inst_id),
            name=str(data.get("name") or inst_id),
            type=data.get("type"),
            note_range=NoteRange.from_dict(data.get("noteRange", data.get("note_range"))),
            supports_velocity=supports,
            state=data.get("state"),
        )


@dataclass
class CompatibilityResult:
    score: float
    reasons: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"score": self.score, "reasons": list(self.reasons), "details": dict(self.details)}


@dataclass
class Assignment:
    channel_number: int
    instrument_id: str
    instrument_name: str
    compatibility: CompatibilityResult
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "channel": self.channel_number,
            "instrumentId": self.instrument_id,
            "instrumentName": self.instrument_name,
            "compatibility": self.compatibility.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass
class Conflict:
    type: str  # unassigned | duplicate | low-compatibility
    channel: int
    message: str
    instrument_id: Optional[str] = None
    other_channel: Optional[int] = None
    score: Optional[float] = None

    def to_dict(self) -> dict:
        out: dict = {"type": self.type, "channel": self.channel, "message": self.message}
        if self.instrument_id is not None:
            out["instrumentId"] = self.instrument_id
        if self.other_channel is not None:
            out["otherChannel"] = self.other_channel
        if self.score is not None:
            out["score"] = self.score
        return out


@dataclass
class ValidationResult:
    is_valid: bool
    conflicts: list[Conflict] = field(default_factory=list)

    def of_type(self, conflict_type: str) -> list[Conflict]:
        return [c for c in self.conflicts if c.type == conflict_type]


@dataclass
class RoutingStats:
    total_channels: int = 0
    assigned_channels: int = 0
    unassigned_channels: int = 0
    compatibility_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalChannels": self.total_channels,
            "assignedChannels": self.assigned_channels,
            "unassignedChannels": self.unassigned_channels,
            "compatibilityScore": self.compatibility_score,
        }


@dataclass
class PresetEntry:
    channel: int
    instrument_id: str
    instrument_name: str = ""

    def to_dict(self) -> dict:
        return {"channel": self.channel, "instrumentId": self.instrument_id, "instrumentName": self.instrument_name}

    @classmethod
    def from_dict(cls, data: dict) -> "PresetEntry":
        inst_id = data.get("instrumentId", data.get("instrument_id"))
        if inst_id is None or "channel" not in data:
            raise ValueError(f"Preset entry needs channel and instrumentId, got {data!r}")
        return cls(
            channel=int(data["channel"]),
            instrument_id=str(inst_id),
            instrument_name=str(data.get("instrumentName") or ""),
        )


@dataclass
class Preset:
    id: str
    name: str
    assignments: list[PresetEntry] = field(default_factory=list)
    created: int = field(default_factory=now_ms)
    channel_count: int = 0
    assignment_count: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "assignments": [a.to_dict() for a in self.assignments],
            "metadata": {
                "created": self.created,
                "channelCount": self.channel_count,
                "assignmentCount": self.assignment_count,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Preset":
        if not isinstance(data, dict) or "id" not in data:
            raise ValueError(f"Preset needs an id, got {data!r}")
        meta = data.get("metadata") or {}
        entries = [PresetEntry.from_dict(a) for a in data.get("assignments") or []]
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            assignments=entries,
            created=int(meta.get("created", 0)),
            channel_count=int(meta.get("channelCount", 0)),
            assignment_count=int(meta.get("assignmentCount", len(entries))),
        )
