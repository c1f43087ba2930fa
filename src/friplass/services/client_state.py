"""Client-local key-value state: favorites, device id and the draft slot.

Earlier versions of the site wrote the same logical value under several keys
(three spellings of "favorites", eight names for the device id). Those are
folded into one canonical key per concept by ``migrate_legacy_keys``, which
runs once when a client session is opened; nothing else reads the legacy
keys.
"""

import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

FAVORITES_KEY = "friplass_favorites_v1"
DEVICE_ID_KEY = "friplass_device_id_v1"
DRAFT_KEY = "friplass:mvpDraft"
MIGRATION_MARKER_KEY = "friplass_keys_migrated_v1"

LEGACY_FAVORITES_KEYS = ("favoritter", "favorites", "favourites")
LEGACY_DEVICE_ID_KEYS = (
    "ownerDeviceId",
    "mvp_ownerDeviceId",
    "deviceId",
    "mvp_deviceId",
    "friplass_ownerDeviceId",
    "friplass_deviceId",
    "mvp_owner_id",
    "mvp_device_id",
)
LEGACY_DRAFT_KEYS = ("friplass:mvp:draft",)


class KeyValueStore(ABC):
    """String-to-string storage, the shape of browser local/session storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class MemoryKeyValueStore(KeyValueStore):
    """In-process store; one instance per session."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileKeyValueStore(KeyValueStore):
    """Durable store kept as a single JSON object on disk."""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Corrupt key-value file {self.path}, starting fresh")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def _parse_id_list(raw: Optional[str]) -> Optional[List[str]]:
    """Favorites as stored: a JSON list, or an object with an "ids" list."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, dict):
        parsed = parsed.get("ids")
    if not isinstance(parsed, list):
        return None
    ids = []
    for item in parsed:
        if isinstance(item, str) and item and item not in ids:
            ids.append(item)
    return ids


def migrate_legacy_keys(kv: KeyValueStore) -> bool:
    """
    Fold legacy keys into the canonical ones, once.

    The first legacy key holding a usable value wins; a canonical value that
    already exists is never overwritten. Legacy keys are removed afterwards.

    Returns:
        True if the migration ran, False if it had already run
    """
    if kv.get(MIGRATION_MARKER_KEY):
        return False

    if _parse_id_list(kv.get(FAVORITES_KEY)) is None:
        for key in LEGACY_FAVORITES_KEYS:
            ids = _parse_id_list(kv.get(key))
            if ids is not None:
                kv.set(FAVORITES_KEY, json.dumps(ids))
                logger.info(f"Migrated {len(ids)} favorites from '{key}'")
                break

    if not (kv.get(DEVICE_ID_KEY) or "").strip():
        for key in LEGACY_DEVICE_ID_KEYS:
            value = (kv.get(key) or "").strip()
            if value:
                kv.set(DEVICE_ID_KEY, value)
                logger.info(f"Migrated device id from '{key}'")
                break

    if not kv.get(DRAFT_KEY):
        for key in LEGACY_DRAFT_KEYS:
            value = kv.get(key)
            if value:
                kv.set(DRAFT_KEY, value)
                logger.info(f"Migrated draft from '{key}'")
                break

    for key in LEGACY_FAVORITES_KEYS + LEGACY_DEVICE_ID_KEYS + LEGACY_DRAFT_KEYS:
        kv.delete(key)
    kv.set(MIGRATION_MARKER_KEY, "1")
    return True


def get_or_create_device_id(kv: KeyValueStore) -> str:
    """The device's pseudo-owner id, generated and stored on first use."""
    existing = (kv.get(DEVICE_ID_KEY) or "").strip()
    if existing:
        return existing
    device_id = str(uuid.uuid4())
    kv.set(DEVICE_ID_KEY, device_id)
    return device_id


class FavoritesStore:
    """
    Favorited listing ids for one device.

    Newest favorites come first. Independent of which device owns a listing.
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def ids(self) -> List[str]:
        return _parse_id_list(self.kv.get(FAVORITES_KEY)) or []

    def _store(self, ids: List[str]) -> None:
        self.kv.set(FAVORITES_KEY, json.dumps(ids))

    def is_favorite(self, listing_id: str) -> bool:
        return listing_id in self.ids()

    def add(self, listing_id: str) -> None:
        ids = self.ids()
        if listing_id in ids:
            return
        self._store([listing_id] + ids)

    def remove(self, listing_id: str) -> None:
        self._store([x for x in self.ids() if x != listing_id])

    def toggle(self, listing_id: str) -> bool:
        """Flip a listing's favorite state; returns the new state."""
        if self.is_favorite(listing_id):
            self.remove(listing_id)
            return False
        self.add(listing_id)
        return True

