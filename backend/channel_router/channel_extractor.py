"""Extract per-channel summaries from a flat MIDI event timeline."""

from typing import Iterable, Optional

import mido
import numpy as np

from channel_router.config import DRUM_CHANNEL, UNKNOWN_HINT, get_program_family
from channel_router.models import ChannelSummary, NoteSample

NOTE_ON_TYPES = ("noteOn", "note_on")


def _resolve_hint(event: dict) -> str:
    if event.get("instrument"):
        return str(event["instrument"])
    if event.get("channel") == DRUM_CHANNEL:
        return "Drum"
    program = event.get("program")
    if program is None:
        return UNKNOWN_HINT
    return get_program_family(int(program))


def extract_channels(timeline: Optional[Iterable[dict]]) -> list[ChannelSummary]:
    """
    Build one ChannelSummary per channel that has at least one note-on, sorted by channel number.
    Events of any other type are ignored. Velocity avg is the midpoint of min and max,
    not the mean over all notes.
    """
    if not timeline:
        return []

    channels: dict[int, ChannelSummary] = {}
    for event in timeline:
        if event.get("type") not in NOTE_ON_TYPES:
            continue
        number = int(event["channel"])
        info = channels.get(number)
        if info is None:
            info = ChannelSummary(
                number=number,
                name=f"Channel {number + 1}",
                instrument_hint=_resolve_hint(event),
                program=int(event.get("program") or 0),
            )
            channels[number] = info

        pitch = int(event["note"])
        velocity = int(event["velocity"])
        info.note_count += 1
        info.notes.append(NoteSample(
            pitch=pitch,
            velocity=velocity,
            duration=event.get("duration") or 0,
            time=event.get("time") or 0,
        ))
        info.note_range.widen(pitch)
        info.velocity.min = min(info.velocity.min, velocity)
        info.velocity.max = max(info.velocity.max, velocity)

    for info in channels.values():
        # midpoint, rounded half up
        info.velocity.avg = (info.velocity.min + info.velocity.max + 1) // 2

    return [channels[n] for n in sorted(channels)]


def timeline_from_midi(midi: mido.MidiFile) -> list[dict]:
    """
    Flatten every track of a parsed MIDI file into time-ordered generic events.

    time and duration are absolute ticks. A note-on with velocity 0 counts as a note-off.
    Programs are resolved across all tracks by absolute time, so each note-on carries the
    program in force on its channel at that tick and its GM family as `instrument`.
    Channel 10 (index 9) is always "Drum".
    """
    events: list[dict] = []

    for track in midi.tracks:
        track_time = 0
        active_notes: dict[tuple[int, int], list[dict]] = {}
        for msg in track:
            track_time += msg.time
            if not hasattr(msg, "channel"):
                continue
            if msg.type == "program_change":
                events.append({"type": "programChange", "channel": msg.channel, "program": msg.program, "time": track_time})
            elif msg.type == "note_on" and msg.velocity > 0:
                event = {
                    "type": "noteOn",
                    "channel": msg.channel,
                    "note": msg.note,
                    "velocity": msg.velocity,
                    "duration": 0,
                    "time": track_time,
                }
                active_notes.setdefault((msg.channel, msg.note), []).append(event)
                events.append(event)
            elif msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
                pending = active_notes.get((msg.channel, msg.note))
                if pending:
                    started = pending.pop(0)
                    started["duration"] = track_time - started["time"]
                events.append({"type": "noteOff", "channel": msg.channel, "note": msg.note, "time": track_time})
            elif msg.type == "control_change":
                events.append({
                    "type": "controlChange",
                    "channel": msg.channel,
                    "controller": msg.control,
                    "value": msg.value,
                    "time": track_time,
                })

    # program changes apply before notes on the same tick; otherwise track order is kept
    timeline = sorted(events, key=lambda e: (e["time"], e["type"] != "programChange"))

    programs: dict[int, int] = {}
    for event in timeline:
        if event["type"] == "programChange":
            programs[event["channel"]] = event["program"]
        elif event["type"] == "noteOn":
            channel = event["channel"]
            if channel in programs:
                event["program"] = programs[channel]
            if channel == DRUM_CHANNEL:
                event["instrument"] = "Drum"
            elif channel in programs:
                event["instrument"] = get_program_family(programs[channel])
    return timeline


def analyze_channel_content(channel: Optional[ChannelSummary]) -> dict:
    if channel is None:
        return {"type": "unknown", "confidence": 0.0}
    if channel.number == DRUM_CHANNEL:
        return {"type": "percussion", "confidence": 1.0}

    avg_pitch = float(np.mean([n.pitch for n in channel.notes])) if channel.notes else 0.0
    if avg_pitch < 48:
        return {"type": "bass", "confidence": 0.8}
    if avg_pitch > 60:
        return {"type": "lead", "confidence": 0.7}
    return {"type": "melodic", "confidence": 0.5}
