"""Session-scoped draft storage for the new-listing wizard.

Each wizard step saves only the fields it owns. ``DraftStore.save`` merges
those partial updates over the stored draft, so a step can never erase what
another step wrote.
"""

import copy
import json
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional

from ..models.listing import BuildResult
from .client_state import (
    DRAFT_KEY,
    FavoritesStore,
    KeyValueStore,
    get_or_create_device_id,
    migrate_legacy_keys,
)
from .normalizer import canonicalize, merge

logger = logging.getLogger(__name__)


class DraftStore:
    """
    One working draft per session.

    The draft is canonicalized on every load and save, so drafts written by
    older versions of the wizard (imageUrls, pricePerNight, locationText)
    come back in the current shape.
    """

    def __init__(self, kv: KeyValueStore, key: str = DRAFT_KEY):
        self.kv = kv
        self.key = key

    def _read(self) -> Dict[str, Any]:
        raw = self.kv.get(self.key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored draft is not valid JSON, starting from an empty draft")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Dict[str, Any]:
        """The current draft, or an empty one."""
        return canonicalize(self._read())

    def save(self, values: Any) -> Dict[str, Any]:
        """
        Merge ``values`` over the stored draft and store the result.

        Keys in ``values`` overwrite the stored ones; keys it does not carry
        are kept.

        Returns:
            The draft as stored
        """
        merged = merge(self.load(), values)
        self.kv.set(self.key, json.dumps(merged, ensure_ascii=False))
        return merged

    def clear(self) -> None:
        self.kv.delete(self.key)


class DraftAutosaver:
    """
    Debounce field-level edits before they reach the draft store.

    Edits arriving within ``delay`` seconds of each other are coalesced into
    a single save. A payload identical to the previous save is skipped.
    """

    def __init__(
        self,
        store: DraftStore,
        delay: float = 0.3,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.store = store
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._pending: Dict[str, Any] = {}
        self._timer: Optional[threading.Timer] = None
        self._last_payload = ""

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def schedule(self, values: Any) -> None:
        """Queue an edit and restart the idle window."""
        if not isinstance(values, Mapping) or not values:
            return
        with self._lock:
            self._pending.update(copy.deepcopy(dict(values)))
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self.delay, self._on_timer)
            self._timer.daemon = True
            self._timer.start()

    def _on_timer(self) -> None:
        try:
            self.flush()
        except Exception:
            logger.exception("Draft autosave failed")

    def flush(self) -> bool:
        """
        Save pending edits now.

        Returns:
            True if anything was written
        """
        # Timer thread and callers share one load-merge-write at a time
        with self._save_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                pending, self._pending = self._pending, {}

            if not pending:
                return False

            payload = json.dumps(pending, sort_keys=True, default=str)
            if payload == self._last_payload:
                return False
            self._last_payload = payload

            self.store.save(pending)
            logger.debug(f"Autosaved draft fields: {sorted(pending)}")
            return True

    def cancel(self) -> None:
        """Drop pending edits without saving them."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = {}


def publish_draft(drafts: DraftStore, repository) -> BuildResult:
    """
    Publish the session's draft.

    The draft is cleared only when the listing was stored; a rejected draft
    stays so the user can fix the problems.
    """
    result = repository.create(drafts.load())
    if result.ok:
        drafts.clear()
        logger.info(f"Published draft as listing {result.listing['id']}")
    return result


class ClientSession:
    """
    Client-local state for one browser: durable local storage plus the
    tab's session storage.

    Opening a session runs the one-time legacy key migration on both stores.
    """

    def __init__(self, local: KeyValueStore, session: Optional[KeyValueStore] = None):
        self.local = local
        self.session = session if session is not None else local
        migrate_legacy_keys(self.local)
        if self.session is not self.local:
            migrate_legacy_keys(self.session)

        self.favorites = FavoritesStore(self.local)
        self.drafts = DraftStore(self.session)

    @property
    def device_id(self) -> str:
        return get_or_create_device_id(self.local)
