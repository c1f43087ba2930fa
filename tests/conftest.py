"""Shared fixtures for Friplass tests."""

import copy

import pytest

from friplass.services.client_state import MemoryKeyValueStore
from friplass.services.drafts import DraftStore
from friplass.services.repository import (
    JsonFileRecordStore,
    ListingRepository,
    MemoryRecordStore,
)
from friplass.services.uploads import UploadStore


@pytest.fixture
def valid_draft():
    """A draft that passes validation, with no explicit category."""
    return {
        "title": "Bobilplass ved sjøen",
        "description": "En rolig plass nær vannet med god plass til bobil.",
        "images": [{"url": "/u/1.jpg"}],
    }


@pytest.fixture
def boat_listing():
    """A stored listing in the boat category."""
    return {
        "id": "boat-1",
        "ownerDeviceId": "device-a",
        "title": "Gjesteplass ved flytebrygge",
        "description": "Plass til båt opptil 30 fot, strøm på brygga.",
        "category": "batplass",
        "location": {"address": "Bryggeveien 1, Tønsberg"},
        "locationText": "Bryggeveien 1, Tønsberg",
        "address": "Bryggeveien 1, Tønsberg",
        "price": {"perNight": 250, "currency": "NOK"},
        "pricePerNight": 250,
        "images": [{"url": "/uploads/boat.jpg"}],
        "mainImageUrl": "/uploads/boat.jpg",
        "badges": ["strom", "vann"],
        "suitability": ["strom", "vann"],
        "createdAt": "2024-03-01T10:00:00.000Z",
    }


@pytest.fixture
def camper_listing():
    """A legacy-shaped listing: no category, pricePerNight, imageUrls."""
    return {
        "id": "camper-1",
        "ownerDeviceId": "device-b",
        "title": "Bobil på gården",
        "description": "Flat grusplass for bobil med utsikt over fjorden.",
        "locationText": "Gårdsveien 4, Voss",
        "pricePerNight": 150,
        "imageUrls": ["/uploads/camper.jpg"],
        "suitability": ["rolig"],
        "createdAt": "2024-05-10T08:30:00.000Z",
    }


@pytest.fixture
def tent_listing():
    """A listing with no price and no owner, created first."""
    return {
        "id": "tent-1",
        "title": "Teltplass i skogen",
        "description": "Stille teltplass med bålplass og bekk rett ved.",
        "category": "campingplass",
        "address": "Skogstien, Gjøvik",
        "images": [{"url": "/uploads/tent.jpg"}],
        "badges": ["familievennlig"],
        "createdAt": "2024-01-15T12:00:00.000Z",
    }


@pytest.fixture
def sample_listings(boat_listing, camper_listing, tent_listing):
    """Three listings in stored (newest-first) order."""
    return [camper_listing, boat_listing, tent_listing]


@pytest.fixture
def repository(sample_listings):
    """Repository over an in-memory store seeded with the sample listings."""
    return ListingRepository(MemoryRecordStore(copy.deepcopy(sample_listings)))


@pytest.fixture
def empty_repository():
    return ListingRepository(MemoryRecordStore())


@pytest.fixture
def listings_path(tmp_path):
    return tmp_path / "data" / "listings.json"


@pytest.fixture
def file_repository(listings_path):
    """Repository over a JSON file that does not exist yet."""
    return ListingRepository(JsonFileRecordStore(str(listings_path)))


@pytest.fixture
def session_kv():
    return MemoryKeyValueStore()


@pytest.fixture
def draft_store(session_kv):
    return DraftStore(session_kv)


@pytest.fixture
def upload_store(tmp_path):
    return UploadStore(str(tmp_path / "uploads"))


@pytest.fixture
def app_config(tmp_path):
    """Configuration pointing every path into a temporary directory."""
    return {
        "environment": "test",
        "storage": {
            "listings_path": str(tmp_path / "data" / "listings.json"),
            "uploads_dir": str(tmp_path / "uploads"),
            "uploads_url_prefix": "/uploads",
        },
        "admin": {"migrate_secret": ""},
        "server": {"host": "127.0.0.1", "port": 5000, "debug": False},
    }


@pytest.fixture
def app(app_config, repository):
    from friplass.web.app import create_app

    app = create_app(app_config, repository=repository)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
