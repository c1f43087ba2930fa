from .builder import apply_update, build_listing, validate_draft
from .classifier import infer_category, normalize_explicit_category, resolve_category
from .client_state import (
    FavoritesStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
    get_or_create_device_id,
    migrate_legacy_keys,
)
from .drafts import ClientSession, DraftAutosaver, DraftStore, publish_draft
from .filtering import filter_and_sort, owned_by
from .repository import (
    JsonFileRecordStore,
    ListingRepository,
    MemoryRecordStore,
    NotFoundError,
    RecordStore,
    RecordStoreError,
)
from .uploads import UploadError, UploadStore

__all__ = [
    "apply_update",
    "build_listing",
    "validate_draft",
    "infer_category",
    "normalize_explicit_category",
    "resolve_category",
    "FavoritesStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "get_or_create_device_id",
    "migrate_legacy_keys",
    "ClientSession",
    "DraftAutosaver",
    "DraftStore",
    "publish_draft",
    "filter_and_sort",
    "owned_by",
    "JsonFileRecordStore",
    "ListingRepository",
    "MemoryRecordStore",
    "NotFoundError",
    "RecordStore",
    "RecordStoreError",
    "UploadError",
    "UploadStore",
]
