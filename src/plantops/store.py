"""Entity store — the whole plant collection as one JSON document under one key.

The underlying medium is an abstract key-value blob store. Every mutation is a
read-modify-write of the full collection, serialized by a lock and published
with an atomic replace, so readers never see a half-written document.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from plantops.errors import NotFoundError, StoreError
from plantops.models import Plant

logger = logging.getLogger(__name__)

DEFAULT_KEY = "plantops_data_v1"


@runtime_checkable
class BlobStore(Protocol):
    """Minimal key-value medium."""

    def read(self, key: str) -> str | None:
        """Return the stored text, or None if the key was never written."""
        ...

    def write(self, key: str, data: str) -> None:
        """Replace the stored text atomically."""
        ...


class MemoryBlobStore:
    """In-process blob store (tests, throwaway sessions)."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, data: str) -> None:
        self._data[key] = data


class FileBlobStore:
    """One ``<key>.json`` file per key, with timestamped backups in ``.versions/``."""

    def __init__(self, root: Path, keep_versions: int = 10) -> None:
        self.root = root
        self.keep_versions = keep_versions

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, data: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._backup(path)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{key}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _backup(self, path: Path) -> None:
        """Backup to .versions/, keep at most ``keep_versions`` per key."""
        if not path.exists() or self.keep_versions <= 0:
            return
        versions_dir = self.root / ".versions"
        versions_dir.mkdir(exist_ok=True)
        ts = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        (versions_dir / f"{path.stem}-{ts}.json").write_text(
            path.read_text(encoding="utf-8"), encoding="utf-8"
        )
        old = sorted(versions_dir.glob(f"{path.stem}-*.json"))
        for f in old[: -self.keep_versions]:
            f.unlink()


class EntityStore:
    """Durable keyed collection of plants. No business rules live here."""

    def __init__(self, blobs: BlobStore, key: str = DEFAULT_KEY) -> None:
        self._blobs = blobs
        self._key = key
        self._lock = threading.RLock()

    # ── Reads ────────────────────────────────────────────────

    def _load(self) -> list[Plant]:
        """Decode the stored document. Raises StoreError on any failure."""
        try:
            raw = self._blobs.read(self._key)
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Cannot read '{self._key}': {e}") from e
        if raw is None or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreError(f"Stored document '{self._key}' is not JSON: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"Stored document '{self._key}' is not a list of plants")
        try:
            return [Plant.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Stored document '{self._key}' has an unexpected shape: {e}") from e

    def list(self) -> list[Plant]:
        """All plants in store order. An unreadable store reads as empty."""
        with self._lock:
            try:
                return self._load()
            except StoreError as e:
                logger.error("Failed to load plants, treating store as empty: %s", e)
                return []

    def get(self, plant_id: str) -> Plant:
        for plant in self.list():
            if plant.id == plant_id:
                return plant
        raise NotFoundError(plant_id)

    def find(self, name_or_id: str) -> Plant:
        """Look up by id, then by case-insensitive name."""
        plants = self.list()
        for plant in plants:
            if plant.id == name_or_id:
                return plant
        q = name_or_id.strip().lower()
        for plant in plants:
            if plant.name.lower() == q:
                return plant
        raise NotFoundError(name_or_id)

    # ── Writes ───────────────────────────────────────────────

    def _save(self, plants: list[Plant]) -> None:
        payload = json.dumps([p.to_dict() for p in plants], ensure_ascii=False)
        try:
            self._blobs.write(self._key, payload)
        except OSError as e:
            logger.error("Failed to persist %d plants: %s", len(plants), e)
            raise StoreError(f"Cannot write '{self._key}': {e}") from e

    def upsert(self, plant: Plant) -> None:
        """Replace the plant with the same id, else append it.

        Loads strictly: a corrupt document raises StoreError instead of being
        overwritten by a one-plant collection.
        """
        with self._lock:
            plants = self._load()
            for i, existing in enumerate(plants):
                if existing.id == plant.id:
                    plants[i] = plant
                    break
            else:
                plants.append(plant)
            self._save(plants)
        logger.debug("Upserted plant %s (%s)", plant.id, plant.name)

    def delete(self, plant_id: str) -> None:
        """Remove a plant. Deleting an absent id is a no-op."""
        with self._lock:
            plants = self._load()
            remaining = [p for p in plants if p.id != plant_id]
            if len(remaining) == len(plants):
                return
            self._save(remaining)
        logger.info("Deleted plant %s", plant_id)
