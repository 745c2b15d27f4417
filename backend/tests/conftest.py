"""
Shared pytest fixtures for the routing engine tests.

Creates a minimal valid MIDI file in-process via mido so no binary
fixture needs to be committed to the repo, plus builders for channel
summaries, instruments and timelines.
"""
from __future__ import annotations

import sys
from pathlib import Path

import mido
import pytest

# Allow imports from backend/ when running from repo root without installing
_BACKEND = Path(__file__).resolve().parent.parent
if str(_BACKEND) not in sys.path:
    sys.path.insert(0, str(_BACKEND))

from channel_router.events import EventBus
from channel_router.models import ChannelSummary, InstrumentDescriptor, NoteRange
from channel_router.presets import MemoryStore, PresetLibrary
from channel_router.routing_store import RoutingStore


@pytest.fixture(scope="session")
def minimal_midi_path(tmp_path_factory) -> Path:
    """
    Write a minimal but valid type-1 MIDI file to a temp directory.
    Two tracks: tempo, and a piano melody on channel 0 (program 0, 8 notes, 240 ticks each).
    """
    tmp = tmp_path_factory.mktemp("fixtures")
    out = tmp / "test_melody.mid"

    mid = mido.MidiFile(type=1, ticks_per_beat=480)

    t0 = mido.MidiTrack()
    t0.append(mido.MetaMessage("set_tempo", tempo=500_000, time=0))  # 120 BPM
    t0.append(mido.MetaMessage("end_of_track", time=0))
    mid.tracks.append(t0)

    t1 = mido.MidiTrack()
    t1.append(mido.Message("program_change", program=0, channel=0, time=0))
    t1.append(mido.Message("control_change", control=7, value=100, channel=0, time=0))
    for note in [60, 64, 67, 72, 67, 64, 60, 55]:
        t1.append(mido.Message("note_on", note=note, velocity=80, channel=0, time=0))
        t1.append(mido.Message("note_off", note=note, velocity=0, channel=0, time=240))
    t1.append(mido.MetaMessage("end_of_track", time=0))
    mid.tracks.append(t1)

    mid.save(str(out))
    return out


def note_on(channel: int, note: int, velocity: int = 100, time: int = 0, **extra) -> dict:
    return dict({"type": "noteOn", "channel": channel, "note": note, "velocity": velocity, "time": time}, **extra)


@pytest.fixture
def make_channel():
    def _make(number: int, hint: str = "Piano", low: int = 60, high: int = 72, note_count: int = 10) -> ChannelSummary:
        return ChannelSummary(
            number=number,
            name=f"Channel {number + 1}",
            instrument_hint=hint,
            note_count=note_count,
            note_range=NoteRange(min=low, max=high),
        )
    return _make


@pytest.fixture
def make_instrument():
    def _make(
        inst_id: str,
        type: str | None = "piano",
        low: int | None = 0,
        high: int | None = 127,
        velocity: bool = True,
        state: str | None = "ready",
    ) -> InstrumentDescriptor:
        return InstrumentDescriptor(
            id=inst_id,
            name=inst_id.upper(),
            type=type,
            note_range=NoteRange(min=low, max=high) if low is not None else None,
            supports_velocity=velocity,
            state=state,
        )
    return _make


@pytest.fixture
def band_timeline() -> list[dict]:
    """Piano on ch0 (21-96), bass on ch1 (28-43), drums on ch9 (35-81), plus non-note noise."""
    events = [
        note_on(0, 21, 40, 0, instrument="Piano"),
        note_on(0, 60, 90, 100, instrument="Piano"),
        note_on(0, 96, 101, 200, instrument="Piano"),
        note_on(1, 28, 70, 0, instrument="Bass"),
        note_on(1, 40, 80, 100, instrument="Bass"),
        note_on(1, 43, 90, 200, instrument="Bass"),
        note_on(9, 35, 120, 0, instrument="Drum"),
        note_on(9, 38, 100, 50, instrument="Drum"),
        note_on(9, 42, 60, 100, instrument="Drum"),
        note_on(9, 81, 90, 150, instrument="Drum"),
        {"type": "noteOff", "channel": 0, "note": 21, "time": 90},
        {"type": "controlChange", "channel": 0, "controller": 64, "value": 127, "time": 10},
    ]
    return sorted(events, key=lambda e: e["time"])


@pytest.fixture
def band_instruments(make_instrument) -> list[InstrumentDescriptor]:
    return [
        make_instrument("inst-1", type="piano"),
        make_instrument("inst-2", type="bass", low=24, high=60),
        make_instrument("inst-3", type="drum", low=None),
    ]


@pytest.fixture
def bus() -> EventBus:
    bus = EventBus()
    bus.keep_history = True
    return bus


@pytest.fixture
def store(bus, band_timeline, band_instruments) -> RoutingStore:
    store = RoutingStore(bus, presets=PresetLibrary(MemoryStore()))
    store.initialize(band_timeline, band_instruments)
    return store
