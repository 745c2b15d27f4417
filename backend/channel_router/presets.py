"""Named routing presets and the key-value stores that persist them."""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Protocol

from channel_router.config import get_preset_key, get_preset_path
from channel_router.models import Assignment, Preset, PresetEntry, now_ms

logger = logging.getLogger(__name__)


class PersistedStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        # kept as a JSON copy, like any serialising store
        self._data[key] = json.loads(json.dumps(value))


class JsonFileStore:
    """All keys in one JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def get(self, key: str) -> Optional[Any]:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read() if self.path.exists() else {}
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def default_store() -> PersistedStore:
    path = get_preset_path()
    return JsonFileStore(path) if path else MemoryStore()


class PresetLibrary:
    def __init__(self, store: Optional[PersistedStore] = None, key: Optional[str] = None):
        self.store = store if store is not None else default_store()
        self.key = key or get_preset_key()
        self.presets: list[Preset] = []
        self._lock = threading.RLock()

    def load(self) -> list[Preset]:
        with self._lock:
            try:
                raw = self.store.get(self.key) or []
                self.presets = [Preset.from_dict(p) for p in raw]
                logger.info("Loaded %d routing presets", len(self.presets))
            except (ValueError, TypeError, KeyError) as e:
                logger.error("Failed to load routing presets: %s", e)
                self.presets = []
            return self.presets

    def save(self) -> None:
        with self._lock:
            self.store.set(self.key, [p.to_dict() for p in self.presets])

    def _new_id(self) -> str:
        base = f"preset_{now_ms()}"
        taken = {p.id for p in self.presets}
        preset_id, n = base, 1
        while preset_id in taken:
            preset_id = f"{base}_{n}"
            n += 1
        return preset_id

    def create(self, name: str, assignments: list[Assignment], channel_count: int) -> Preset:
        entries = [
            PresetEntry(channel=a.channel_number, instrument_id=a.instrument_id, instrument_name=a.instrument_name)
            for a in assignments
        ]
        with self._lock:
            preset = Preset(
                id=self._new_id(),
                name=name,
                assignments=entries,
                channel_count=channel_count,
                assignment_count=len(entries),
            )
            self.presets.append(preset)
            self.save()
        logger.info("Preset created: %s (%s)", name, preset.id)
        return preset

    def get(self, preset_id: str) -> Optional[Preset]:
        with self._lock:
            return next((p for p in self.presets if p.id == preset_id), None)

    def delete(self, preset_id: str) -> bool:
        with self._lock:
            preset = self.get(preset_id)
            if preset is None:
                logger.warning("Preset not found: %s", preset_id)
                return False
            self.presets.remove(preset)
            self.save()
        logger.info("Preset deleted: %s", preset_id)
        return True

    def list_presets(self) -> list[Preset]:
        with self._lock:
            return list(self.presets)
