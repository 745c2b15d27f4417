"""Configuration for channel-to-instrument compatibility scoring and routing."""

import os
from pathlib import Path
from typing import Optional

# MIDI instrument hint -> device types that can play it (compared lowercase)
TYPE_MAPPING = {
    "Piano": ["keyboard", "piano", "synth"],
    "Organ": ["organ", "keyboard"],
    "Guitar": ["guitar", "string"],
    "Bass": ["bass", "string"],
    "Strings": ["string", "orchestral"],
    "Ensemble": ["orchestral", "synth"],
    "Brass": ["brass", "wind"],
    "Reed": ["reed", "wind"],
    "Pipe": ["wind", "orchestral"],
    "Lead": ["synth", "lead"],
    "Pad": ["synth", "pad"],
    "Synth": ["synth"],
    "Drum": ["percussion", "drum"],
    "Percussion": ["percussion"],
}

# Score weights (sum to 1.0)
TYPE_MATCH_WEIGHT = 0.4
NOTE_RANGE_WEIGHT = 0.3
VELOCITY_WEIGHT = 0.2
AVAILABILITY_WEIGHT = 0.1

NO_RANGE_SCORE = 0.5  # instrument declares no range
NOTE_RANGE_REASON_THRESHOLD = 0.8

DEFAULT_MIN_SCORE = 0.3
LOW_COMPATIBILITY_THRESHOLD = 0.3

READY_STATE = "ready"
DRUM_CHANNEL = 9
UNKNOWN_HINT = "Unknown"

# GM program blocks of 8, named with the TYPE_MAPPING vocabulary where one fits
GM_PROGRAM_FAMILIES = [
    "Piano",            # 0-7
    "Chromatic Percussion",
    "Organ",
    "Guitar",
    "Bass",             # 32-39
    "Strings",
    "Ensemble",
    "Brass",
    "Reed",             # 64-71
    "Pipe",
    "Lead",
    "Pad",
    "Synth",            # 96-103 (synth effects)
    "Ethnic",
    "Percussion",
    "Sound Effects",
]

DEFAULT_PRESET_KEY = "routing_presets"


def get_program_family(program: int) -> str:
    if program is None or not 0 <= program <= 127:
        return UNKNOWN_HINT
    return GM_PROGRAM_FAMILIES[program // 8]


def get_accepted_types(hint: str) -> list[str]:
    return TYPE_MAPPING.get(hint or "", [])


def get_min_score() -> float:
    raw = os.getenv("ROUTING_MIN_SCORE")
    if not raw:
        return DEFAULT_MIN_SCORE
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"ROUTING_MIN_SCORE must be a number, got {raw!r}")
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"ROUTING_MIN_SCORE must be in [0, 1], got {value}")
    return value


def get_preset_key() -> str:
    return os.getenv("ROUTING_PRESET_KEY", DEFAULT_PRESET_KEY).strip() or DEFAULT_PRESET_KEY


def get_preset_path() -> Optional[Path]:
    """File used by the JSON preset store; None keeps presets in memory."""
    raw = os.getenv("ROUTING_PRESET_PATH")
    return Path(raw) if raw else None
