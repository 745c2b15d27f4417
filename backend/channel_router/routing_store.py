"""Channel-to-instrument assignment table with validation, presets and import/export."""

import logging
import threading
from typing import Iterable, Optional, Sequence

from channel_router.auto_router import calculate_best_routing
from channel_router.channel_extractor import analyze_channel_content, extract_channels
from channel_router.compatibility import score_compatibility
from channel_router.config import LOW_COMPATIBILITY_THRESHOLD, get_min_score
from channel_router.events import EventSink
from channel_router.models import (
    Assignment,
    ChannelSummary,
    Conflict,
    InstrumentDescriptor,
    NoteSample,
    Preset,
    RoutingMode,
    RoutingStats,
    ValidationResult,
    now_ms,
)
from channel_router.presets import PresetLibrary
from channel_router.validator import compute_stats, validate

logger = logging.getLogger(__name__)


class RoutingStore:
    """
    Single owner of the routing state for one loaded MIDI file and instrument set.

    Every mutation re-validates, recomputes stats and then notifies the event sink, so
    listeners never observe a half-updated table. Mutations share one re-entrant lock.
    """

    def __init__(self, events: EventSink, presets: Optional[PresetLibrary] = None):
        self.events = events
        self.presets = presets if presets is not None else PresetLibrary()
        self.channels: list[ChannelSummary] = []
        self.instruments: list[InstrumentDescriptor] = []
        self.assignments: dict[int, Assignment] = {}
        self.mode = RoutingMode.MANUAL
        self.current_preset_id: Optional[str] = None
        self.validation = ValidationResult(is_valid=False)
        self.stats = RoutingStats()
        self._lock = threading.RLock()

    # ── initialisation ──────────────────────────────────────────────────────

    def initialize(self, timeline: Optional[Iterable[dict]], instruments: Sequence[InstrumentDescriptor]) -> None:
        with self._lock:
            self.channels = extract_channels(timeline)
            self.instruments = list(instruments or [])
            self.assignments = {}
            self.current_preset_id = None
            self.presets.load()

            if self.mode == RoutingMode.AUTO:
                self.auto_route()

            self._refresh()
            logger.info(
                "Routing initialized: %d channels, %d instruments", len(self.channels), len(self.instruments)
            )
            self.events.emit("routing:initialized", {
                "channels": len(self.channels),
                "instruments": len(self.instruments),
            })

    def set_instruments(self, instruments: Sequence[InstrumentDescriptor]) -> None:
        """Replace the device snapshot; existing assignments are kept as they are."""
        with self._lock:
            self.instruments = list(instruments or [])

    def _refresh(self) -> None:
        self.validation = validate(self.channels, self.assignments)
        self.stats = compute_stats(self.channels, self.assignments)

    def _find_channel(self, number: int) -> Optional[ChannelSummary]:
        return next((c for c in self.channels if c.number == number), None)

    def _find_instrument(self, instrument_id: str) -> Optional[InstrumentDescriptor]:
        return next((i for i in self.instruments if i.id == instrument_id), None)

    # ── assignment ──────────────────────────────────────────────────────────

    def assign(self, channel_number: int, instrument_id: str) -> bool:
        with self._lock:
            channel = self._find_channel(channel_number)
            if channel is None:
                logger.warning("Invalid channel: %s", channel_number)
                return False
            instrument = self._find_instrument(instrument_id)
            if instrument is None:
                logger.warning("Invalid instrument: %s", instrument_id)
                return False

            compatibility = score_compatibility(channel, instrument)
            if compatibility.score < LOW_COMPATIBILITY_THRESHOLD:
                logger.warning(
                    "Low compatibility for CH%d -> %s: %.2f", channel_number + 1, instrument.name, compatibility.score
                )

            self.assignments[channel_number] = Assignment(
                channel_number=channel_number,
                instrument_id=instrument.id,
                instrument_name=instrument.name,
                compatibility=compatibility,
            )
            logger.info("Assigned CH%d -> %s", channel_number + 1, instrument.name)

            self._refresh()
            self.events.emit("routing:assigned", {
                "channel": channel_number,
                "instrument": instrument.id,
                "compatibility": compatibility.score,
            })
            return True

    def unassign(self, channel_number: int) -> bool:
        with self._lock:
            if channel_number not in self.assignments:
                return False
            del self.assignments[channel_number]
            self._refresh()
            self.events.emit("routing:unassigned", {"channel": channel_number})
            return True

    def clear_all(self) -> None:
        with self._lock:
            self.assignments.clear()
            self._refresh()
            self.events.emit("routing:cleared", {})
            logger.info("All assignments cleared")

    def auto_route(self, min_score: Optional[float] = None) -> int:
        """Clear the table and commit the greedy best routing. Returns the number of assignments made."""
        with self._lock:
            threshold = get_min_score() if min_score is None else min_score
            self.clear_all()
            matches = calculate_best_routing(self.channels, self.instruments, threshold)
            for match in matches:
                self.assign(match.channel, match.instrument.id)
            self.mode = RoutingMode.AUTO
            self.current_preset_id = None
            logger.info("Auto-routing completed: %d of %d channels", len(matches), len(self.channels))
            self.events.emit("routing:auto-routed", {"assignments": len(matches)})
            return len(matches)

    # ── presets ─────────────────────────────────────────────────────────────

    def create_preset(self, name: str) -> Preset:
        with self._lock:
            preset = self.presets.create(name, list(self.assignments.values()), len(self.channels))
            self.events.emit("routing:preset-created", {"preset": preset.to_dict()})
            return preset

    def apply_preset(self, preset_id: str) -> bool:
        """Replace the routing with a saved preset. Pairs whose instrument is gone are skipped."""
        with self._lock:
            preset = self.presets.get(preset_id)
            if preset is None:
                logger.warning("Preset not found: %s", preset_id)
                return False

            self.clear_all()
            for entry in preset.assignments:
                if self._find_instrument(entry.instrument_id) is None:
                    logger.warning(
                        "Instrument not found: %s (preset %s, CH%d)", entry.instrument_id, preset.id, entry.channel + 1
                    )
                    continue
                self.assign(entry.channel, entry.instrument_id)

            self.mode = RoutingMode.PRESET
            self.current_preset_id = preset.id
            logger.info("Preset applied: %s", preset.name)
            self.events.emit("routing:preset-applied", {"preset": preset.to_dict()})
            return True

    def delete_preset(self, preset_id: str) -> bool:
        with self._lock:
            if not self.presets.delete(preset_id):
                return False
            if self.current_preset_id == preset_id:
                self.current_preset_id = None
            self.events.emit("routing:preset-deleted", {"presetId": preset_id})
            return True

    def list_presets(self) -> list[Preset]:
        return self.presets.list_presets()

    # ── export / import ─────────────────────────────────────────────────────

    def export(self) -> dict:
        with self._lock:
            return {
                "mode": self.mode.value,
                "currentPresetId": self.current_preset_id,
                "assignments": [
                    {
                        "channel": number,
                        "instrumentId": a.instrument_id,
                        "instrumentName": a.instrument_name,
                        "compatibility": a.compatibility.score,
                    }
                    for number, a in self.assignments.items()
                ],
                "stats": self.stats.to_dict(),
                "timestamp": now_ms(),
            }

    def import_config(self, config: Optional[dict]) -> bool:
        if not isinstance(config, dict) or not isinstance(config.get("assignments"), list):
            logger.warning("Routing config has no assignments list")
            return False
        try:
            mode = RoutingMode(config.get("mode") or RoutingMode.MANUAL.value)
        except ValueError:
            logger.warning("Unknown routing mode: %r", config.get("mode"))
            return False

        with self._lock:
            self.clear_all()
            for item in config["assignments"]:
                if not isinstance(item, dict):
                    continue
                inst_id = item.get("instrumentId", item.get("instrument_id"))
                try:
                    channel_number = int(item.get("channel"))
                except (TypeError, ValueError):
                    logger.warning("Skipping imported assignment with bad channel: %r", item)
                    continue
                if inst_id is not None and self._find_instrument(str(inst_id)) is not None:
                    self.assign(channel_number, str(inst_id))
            self.mode = mode
            self.current_preset_id = config.get("currentPresetId")
            logger.info("Configuration imported: %d assignments", len(self.assignments))
            self.events.emit("routing:imported", {"assignments": len(self.assignments)})
            return True

    # ── reads ───────────────────────────────────────────────────────────────

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid

    def get_assignment(self, channel_number: int) -> Optional[Assignment]:
        return self.assignments.get(channel_number)

    def get_assignments(self) -> list[Assignment]:
        return list(self.assignments.values())

    def is_channel_assigned(self, channel_number: int) -> bool:
        return channel_number in self.assignments

    def get_conflicts(self) -> list[Conflict]:
        return list(self.validation.conflicts)

    def get_stats(self) -> RoutingStats:
        return RoutingStats(**vars(self.stats))

    def get_unassigned_channels(self) -> list[ChannelSummary]:
        return [c for c in self.channels if c.number not in self.assignments]

    def get_notes_for_channel(self, channel_number: int) -> list[NoteSample]:
        channel = self._find_channel(channel_number)
        return list(channel.notes) if channel else []

    def analyze_channel_content(self, channel_number: int) -> dict:
        return analyze_channel_content(self._find_channel(channel_number))

    def snapshot(self) -> dict:
        """Serializable view of the whole state for API responses."""
        with self._lock:
            return {
                "mode": self.mode.value,
                "currentPresetId": self.current_preset_id,
                "isValid": self.validation.is_valid,
                "assignments": [a.to_dict() for a in self.assignments.values()],
                "conflicts": [c.to_dict() for c in self.validation.conflicts],
                "stats": self.stats.to_dict(),
            }
