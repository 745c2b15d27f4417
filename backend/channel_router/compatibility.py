"""Score how well a MIDI channel suits an instrument."""

from typing import Optional

from channel_router.config import (
    AVAILABILITY_WEIGHT,
    NO_RANGE_SCORE,
    NOTE_RANGE_REASON_THRESHOLD,
    NOTE_RANGE_WEIGHT,
    TYPE_MATCH_WEIGHT,
    VELOCITY_WEIGHT,
    get_accepted_types,
)
from channel_router.models import ChannelSummary, CompatibilityResult, InstrumentDescriptor, NoteRange


def match_instrument_type(instrument_hint: str, device_type: Optional[str]) -> bool:
    if not device_type:
        return False
    return device_type.lower() in get_accepted_types(instrument_hint)


def note_range_score(channel_range: NoteRange, instrument_range: Optional[NoteRange]) -> float:
    """1.0 when the channel fits inside the instrument, else the overlapping fraction of the channel span."""
    if instrument_range is None:
        return NO_RANGE_SCORE

    if channel_range.min >= instrument_range.min and channel_range.max <= instrument_range.max:
        return 1.0

    channel_span = channel_range.max - channel_range.min
    if channel_span <= 0:
        return 0.0
    overlap = max(0, min(channel_range.max, instrument_range.max) - max(channel_range.min, instrument_range.min))
    return overlap / channel_span


def score_compatibility(channel: ChannelSummary, instrument: InstrumentDescriptor) -> CompatibilityResult:
    score = 0.0
    reasons: list[str] = []

    type_match = match_instrument_type(channel.instrument_hint, instrument.type)
    if type_match:
        score += TYPE_MATCH_WEIGHT
        reasons.append("Type matches")

    range_score = note_range_score(channel.note_range, instrument.note_range)
    score += range_score * NOTE_RANGE_WEIGHT
    if range_score > NOTE_RANGE_REASON_THRESHOLD:
        reasons.append("Note range compatible")

    if instrument.supports_velocity:
        score += VELOCITY_WEIGHT
        reasons.append("Velocity supported")

    if instrument.is_ready:
        score += AVAILABILITY_WEIGHT
        reasons.append("Instrument ready")

    return CompatibilityResult(
        score=round(min(score, 1.0), 6),
        reasons=reasons,
        details={
            "typeMatch": type_match,
            "noteRangeScore": range_score,
            "velocitySupport": instrument.supports_velocity,
            "availability": instrument.is_ready,
        },
    )
