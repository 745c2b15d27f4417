"""
Auto-route a MIDI file onto a set of instruments and print the result.

Usage (from repo root, after `pip install -e .`):
    python scripts/route_midi.py song.mid --instruments devices.json
    python scripts/route_midi.py song.mid --instruments devices.json --min-score 0.5 --json
    python scripts/route_midi.py song.mid --instruments devices.json --save-preset "Live rig" --preset-file presets.json

devices.json is a JSON array of instruments:
    [{"id": "inst-1", "name": "Stage Piano", "type": "piano",
      "noteRange": {"min": 21, "max": 108}, "supportsVelocity": true, "state": "ready"}]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Allow running from repo root without installing the package
_BACKEND = Path(__file__).resolve().parent.parent / "backend"
if str(_BACKEND) not in sys.path:
    sys.path.insert(0, str(_BACKEND))

import mido

from channel_router.channel_extractor import timeline_from_midi
from channel_router.events import EventBus
from channel_router.presets import JsonFileStore, MemoryStore, PresetLibrary
from channel_router.routing_store import RoutingStore
from channel_router.schema import parse_instruments


def route_file(midi_path: Path, instruments_path: Path, min_score: float | None, preset_file: Path | None) -> RoutingStore:
    devices = parse_instruments(instruments_path.read_text(encoding="utf-8"))
    midi = mido.MidiFile(str(midi_path))

    library = PresetLibrary(JsonFileStore(preset_file) if preset_file else MemoryStore())
    store = RoutingStore(EventBus(), presets=library)
    store.initialize(timeline_from_midi(midi), devices)
    store.auto_route(min_score)
    return store


def print_report(store: RoutingStore) -> None:
    names = {i.id: i.name for i in store.instruments}

    print("── Channels ─────────────────────────────────────────────────────")
    print(f"{'Ch':>3}  {'Hint':<12} {'Notes':>6}  {'Range':<9} {'Vel avg':>7}  Instrument (score)")
    print("─" * 70)
    for ch in store.channels:
        assignment = store.get_assignment(ch.number)
        target = (
            f"{names.get(assignment.instrument_id, assignment.instrument_id)} ({assignment.compatibility.score:.2f})"
            if assignment else "—"
        )
        rng = f"{ch.note_range.min}-{ch.note_range.max}"
        print(f"{ch.number + 1:>3}  {ch.instrument_hint[:12]:<12} {ch.note_count:>6}  {rng:<9} {ch.velocity.avg:>7}  {target}")

    stats = store.get_stats()
    print(
        f"\n{stats.assigned_channels}/{stats.total_channels} channels routed, "
        f"mean compatibility {stats.compatibility_score:.2f}, valid: {store.is_valid}"
    )
    conflicts = store.get_conflicts()
    if conflicts:
        print("\n── Conflicts ────────────────────────────────────────────────────")
        for c in conflicts:
            print(f"  [{c.type}] CH{c.channel + 1}: {c.message}")


def main():
    parser = argparse.ArgumentParser(description="Auto-route MIDI channels onto instruments.")
    parser.add_argument("midi", type=Path, help="Input .mid/.midi file.")
    parser.add_argument("--instruments", type=Path, required=True, help="JSON array of instrument descriptors.")
    parser.add_argument("--min-score", type=float, default=None, help="Minimum compatibility to accept (default 0.3).")
    parser.add_argument("--json", action="store_true", help="Print the exported routing config as JSON.")
    parser.add_argument("--save-preset", metavar="NAME", default=None, help="Save the result as a named preset.")
    parser.add_argument("--preset-file", type=Path, default=None, help="JSON file that stores presets.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine warnings and info.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="[%(name)s] %(message)s")

    if not args.midi.is_file():
        print(f"ERROR: MIDI file not found: {args.midi}", file=sys.stderr)
        sys.exit(1)
    if not args.instruments.is_file():
        print(f"ERROR: Instrument file not found: {args.instruments}", file=sys.stderr)
        sys.exit(1)
    if args.min_score is not None and not 0.0 <= args.min_score <= 1.0:
        print("ERROR: --min-score must be between 0 and 1", file=sys.stderr)
        sys.exit(1)

    try:
        store = route_file(args.midi, args.instruments, args.min_score, args.preset_file)
    except (OSError, EOFError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if args.save_preset:
        preset = store.create_preset(args.save_preset)
        print(f"Preset saved: {preset.name} ({preset.id})", file=sys.stderr)

    if args.json:
        print(json.dumps(store.export(), indent=2))
    else:
        print_report(store)


if __name__ == "__main__":
    main()
