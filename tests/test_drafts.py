"""Tests for draft storage, autosave and publishing."""

import json
import threading
import time

import pytest

from friplass.services.client_state import (
    DEVICE_ID_KEY,
    DRAFT_KEY,
    FAVORITES_KEY,
    MemoryKeyValueStore,
)
from friplass.services.drafts import ClientSession, DraftAutosaver, DraftStore, publish_draft


class SlowKeyValueStore(MemoryKeyValueStore):
    """Signals when a write starts, then takes a while to finish it."""

    def __init__(self):
        super().__init__()
        self.write_started = threading.Event()

    def set(self, key, value):
        self.write_started.set()
        time.sleep(0.2)
        super().set(key, value)


class FakeTimer:
    """Stands in for threading.Timer; fires only when told to."""

    instances = []

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


@pytest.fixture(autouse=True)
def reset_fake_timers():
    FakeTimer.instances = []


class TestDraftStore:
    """Tests for DraftStore."""

    def test_load_empty(self, draft_store):
        assert draft_store.load() == {"images": []}

    def test_partial_saves_do_not_erase_each_other(self, draft_store):
        draft_store.save({"a": 1})
        draft_store.save({"b": 2})

        draft = draft_store.load()
        assert draft["a"] == 1
        assert draft["b"] == 2

    def test_step_fields_survive(self, draft_store):
        draft_store.save({"title": "y"})
        draft_store.save({"description": "x"})

        draft = draft_store.load()
        assert draft["title"] == "y"
        assert draft["description"] == "x"

    def test_save_overwrites_same_key(self, draft_store):
        draft_store.save({"title": "Første"})
        draft_store.save({"title": "Andre"})
        assert draft_store.load()["title"] == "Andre"

    def test_legacy_shape_is_canonical_on_load(self, session_kv, draft_store):
        session_kv.set(DRAFT_KEY, json.dumps({
            "locationText": "Voss",
            "pricePerNight": 100,
            "imageUrls": ["/a.jpg"],
        }))

        draft = draft_store.load()
        assert draft["location"]["address"] == draft["address"] == "Voss"
        assert draft["price"] == {"perNight": 100, "currency": "NOK"}
        assert draft["images"] == [{"url": "/a.jpg"}]
        assert draft["mainImageUrl"] == "/a.jpg"

    def test_location_step_overrides_stored_address(self, draft_store):
        draft_store.save({"location": {"address": "Oslo"}})
        draft_store.save({"locationText": "Bergen"})

        draft = draft_store.load()
        assert draft["location"]["address"] == draft["locationText"] == draft["address"] == "Bergen"

    def test_corrupt_draft_loads_empty(self, session_kv, draft_store):
        session_kv.set(DRAFT_KEY, "{not json")
        assert draft_store.load() == {"images": []}

    def test_clear(self, session_kv, draft_store):
        draft_store.save({"title": "y"})
        draft_store.clear()
        assert session_kv.get(DRAFT_KEY) is None
        assert draft_store.load() == {"images": []}

    def test_main_image_step_is_kept(self, draft_store):
        draft_store.save({"images": [{"url": "/a.jpg"}]})
        draft_store.save({"mainImageUrl": "/b.jpg"})

        draft = draft_store.load()
        assert draft["mainImageUrl"] == "/b.jpg"
        assert draft["images"] == [{"url": "/b.jpg"}, {"url": "/a.jpg"}]

    def test_main_image_step_picks_existing_image(self, draft_store):
        draft_store.save({"images": [{"url": "/a.jpg"}, {"url": "/b.jpg"}]})
        draft_store.save({"mainImageUrl": "/b.jpg"})

        draft = draft_store.load()
        assert draft["mainImageUrl"] == "/b.jpg"
        assert draft["images"] == [{"url": "/a.jpg"}, {"url": "/b.jpg"}]

    def test_removed_image_stays_removed(self, draft_store):
        draft_store.save({"images": [{"url": "/a.jpg"}, {"url": "/b.jpg"}], "mainImageUrl": "/a.jpg"})
        draft_store.save({"images": [{"url": "/b.jpg"}]})

        draft = draft_store.load()
        assert draft["images"] == [{"url": "/b.jpg"}]
        assert draft["mainImageUrl"] == "/b.jpg"


class TestDraftAutosaver:
    """Tests for the debounced autosaver."""

    @pytest.fixture
    def autosaver(self, draft_store):
        return DraftAutosaver(draft_store, delay=0.3, timer_factory=FakeTimer)

    def test_nothing_written_before_timer_fires(self, autosaver, session_kv):
        autosaver.schedule({"title": "Hei"})
        assert autosaver.has_pending
        assert session_kv.get(DRAFT_KEY) is None

    def test_rapid_edits_coalesce(self, autosaver, draft_store):
        autosaver.schedule({"title": "H"})
        autosaver.schedule({"title": "Hei"})
        autosaver.schedule({"description": "Beskrivelse"})

        assert len(FakeTimer.instances) == 3
        assert all(timer.cancelled for timer in FakeTimer.instances[:2])

        FakeTimer.instances[-1].fire()
        draft = draft_store.load()
        assert draft["title"] == "Hei"
        assert draft["description"] == "Beskrivelse"
        assert not autosaver.has_pending

    def test_flush_writes_immediately(self, autosaver, draft_store):
        autosaver.schedule({"title": "Hei"})
        assert autosaver.flush() is True
        assert draft_store.load()["title"] == "Hei"
        assert FakeTimer.instances[-1].cancelled

    def test_identical_payload_is_skipped(self, autosaver):
        autosaver.schedule({"title": "Hei"})
        assert autosaver.flush() is True
        autosaver.schedule({"title": "Hei"})
        assert autosaver.flush() is False

    def test_flush_without_pending(self, autosaver):
        assert autosaver.flush() is False

    def test_cancel_drops_pending(self, autosaver, session_kv):
        autosaver.schedule({"title": "Hei"})
        autosaver.cancel()
        assert not autosaver.has_pending
        assert autosaver.flush() is False
        assert session_kv.get(DRAFT_KEY) is None

    def test_empty_edit_is_ignored(self, autosaver):
        autosaver.schedule({})
        assert not FakeTimer.instances

    def test_flush_waits_for_timer_save(self):
        kv = SlowKeyValueStore()
        store = DraftStore(kv)
        autosaver = DraftAutosaver(store, delay=0.01)

        autosaver.schedule({"title": "Tittel på plassen"})
        assert kv.write_started.wait(2)

        # Timer thread is mid-write; this flush must not read the old draft
        autosaver.schedule({"description": "En lang nok beskrivelse"})
        autosaver.flush()

        draft = store.load()
        assert draft["title"] == "Tittel på plassen"
        assert draft["description"] == "En lang nok beskrivelse"


class TestPublishDraft:
    """Tests for publish_draft."""

    def test_success_clears_draft(self, draft_store, empty_repository, valid_draft):
        draft_store.save(valid_draft)

        result = publish_draft(draft_store, empty_repository)

        assert result.ok
        assert empty_repository.list()[0]["id"] == result.listing["id"]
        assert draft_store.load() == {"images": []}

    def test_failure_keeps_draft(self, draft_store, empty_repository):
        draft_store.save({"title": "Hi"})

        result = publish_draft(draft_store, empty_repository)

        assert not result.ok
        assert empty_repository.list() == []
        assert draft_store.load()["title"] == "Hi"


class TestClientSession:
    """Tests for ClientSession."""

    def test_migrates_legacy_keys_on_open(self):
        local = MemoryKeyValueStore({
            "favoritter": json.dumps(["a", "b"]),
            "mvp_deviceId": "device-1",
        })
        session = MemoryKeyValueStore({"friplass:mvp:draft": json.dumps({"title": "Gammel"})})

        client = ClientSession(local, session)

        assert client.favorites.ids() == ["a", "b"]
        assert client.device_id == "device-1"
        assert client.drafts.load()["title"] == "Gammel"
        assert local.get("favoritter") is None

    def test_single_store(self):
        client = ClientSession(MemoryKeyValueStore())
        client.favorites.add("x")
        client.drafts.save({"title": "Hei"})

        assert json.loads(client.local.get(FAVORITES_KEY)) == ["x"]
        assert client.local.get(DRAFT_KEY)
        assert client.device_id == client.local.get(DEVICE_ID_KEY)
