"""Listing persistence over a whole-collection record store.

Every mutation reads the full collection, changes it in memory and writes
the full collection back. There is no locking around that cycle: two writers
racing on the same store lose one of the writes (last write wins). The site
runs as a single writer, so this is accepted.
"""

import copy
import json
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.listing import CATEGORIES, BuildResult, MigrationReport
from .builder import apply_update, build_listing
from .classifier import infer_category, normalize_explicit_category
from .normalizer import resolve_address

logger = logging.getLogger(__name__)

Listing = Dict[str, Any]


class NotFoundError(LookupError):
    """No listing with the given id."""

    def __init__(self, listing_id: str):
        super().__init__(f"Listing not found: {listing_id}")
        self.listing_id = listing_id


class RecordStoreError(Exception):
    """The record store could not be read or written."""


class RecordStore(ABC):
    """Whole-collection storage for listings."""

    @abstractmethod
    def read_all(self) -> List[Listing]:
        """All listings; an empty list if the collection does not exist yet."""
        pass

    @abstractmethod
    def write_all(self, listings: List[Listing]) -> None:
        """Replace the whole collection."""
        pass


class MemoryRecordStore(RecordStore):
    """Keeps the collection in process; copies on the way in and out."""

    def __init__(self, listings: Optional[List[Listing]] = None):
        self._listings = copy.deepcopy(listings or [])

    def read_all(self) -> List[Listing]:
        return copy.deepcopy(self._listings)

    def write_all(self, listings: List[Listing]) -> None:
        self._listings = copy.deepcopy(listings)


class JsonFileRecordStore(RecordStore):
    """
    Listings stored as one pretty-printed JSON array on disk.

    Writes go to a temporary file that is moved over the real one, so a
    reader sees either the old or the new collection, never half of one.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def read_all(self) -> List[Listing]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            raise RecordStoreError(f"Could not read {self.path}: {e}") from e

        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RecordStoreError(f"{self.path} is not valid JSON: {e}") from e

        if not isinstance(data, list):
            logger.warning(f"{self.path} does not hold a JSON array, treating as empty")
            return []
        return [item for item in data if isinstance(item, dict)]

    def write_all(self, listings: List[Listing]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(listings, f, indent=2, ensure_ascii=False)
                    f.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise RecordStoreError(f"Could not write {self.path}: {e}") from e

    def backup(self) -> Optional[Path]:
        """
        Copy the current file next to itself as listings.bak-YYYYmmdd-HHMMSS.json.

        Returns:
            The backup path, or None if there is nothing to back up
        """
        if not self.path.exists():
            return None
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup_path = self.path.with_name(f"{self.path.stem}.bak-{stamp}{self.path.suffix}")
        try:
            shutil.copyfile(self.path, backup_path)
        except OSError as e:
            raise RecordStoreError(f"Could not back up {self.path}: {e}") from e
        logger.info(f"Backed up {self.path} to {backup_path}")
        return backup_path


class ListingRepository:
    """
    CRUD over the listing collection.

    Newest listings are stored first. All mutations persist the whole
    collection before returning; if the write fails nothing the caller holds
    has changed.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def list(self) -> List[Listing]:
        """All listings in stored order."""
        return self.store.read_all()

    def get(self, listing_id: str) -> Listing:
        for listing in self.store.read_all():
            if listing.get("id") == listing_id:
                return listing
        raise NotFoundError(listing_id)

    def create(self, draft: Any) -> BuildResult:
        """
        Build a listing from a draft and store it first in the collection.

        Returns:
            BuildResult; when it carries problems nothing was stored
        """
        result = build_listing(draft)
        if not result.ok:
            return result

        listings = self.store.read_all()
        self.store.write_all([result.listing] + listings)
        logger.info(
            f"Created listing {result.listing['id']} ({result.listing['category']})"
        )
        return result

    def update(self, listing_id: str, patch: Any) -> Listing:
        """Apply a patch to a stored listing; raises NotFoundError."""
        listings = self.store.read_all()
        for index, listing in enumerate(listings):
            if listing.get("id") == listing_id:
                break
        else:
            raise NotFoundError(listing_id)

        updated = apply_update(listing, patch)
        listings[index] = updated
        self.store.write_all(listings)
        logger.info(f"Updated listing {listing_id}")
        return updated

    def delete(self, listing_id: str) -> None:
        """Remove a listing; raises NotFoundError."""
        listings = self.store.read_all()
        remaining = [listing for listing in listings if listing.get("id") != listing_id]
        if len(remaining) == len(listings):
            raise NotFoundError(listing_id)

        self.store.write_all(remaining)
        logger.info(f"Deleted listing {listing_id}")

    def migrate_categories(self, dry_run: bool = False) -> MigrationReport:
        """
        Give every stored listing a canonical category.

        Missing or unrecognized categories are inferred from the text;
        recognized synonyms ("båtplass") are rewritten to their canonical
        value. Running it again over migrated data changes nothing.

        Args:
            dry_run: Compute the report without writing

        Returns:
            MigrationReport with before/after counts
        """
        listings = self.store.read_all()
        report = MigrationReport(total=len(listings), dry_run=dry_run)

        for listing in listings:
            explicit = normalize_explicit_category(listing.get("category"))
            if explicit:
                report.before_counts[explicit] += 1
            else:
                report.before_counts["missing"] += 1

            final = explicit or infer_category(
                listing.get("title"), listing.get("description"), resolve_address(listing)
            )
            if listing.get("category") != final:
                listing["category"] = final
                report.changed += 1
            else:
                report.already_had += 1
            report.after_counts[final] += 1

        if report.changed and not dry_run:
            self.store.write_all(listings)

        logger.info(
            f"Category migration: {report.total} listings, {report.changed} changed"
            f"{' (dry run)' if dry_run else ''}"
        )
        return report

    def counts_by_category(self) -> Dict[str, int]:
        """Stored listings per canonical category; unrecognized ones as 'missing'."""
        counts = {category: 0 for category in CATEGORIES}
        counts["missing"] = 0
        for listing in self.store.read_all():
            category = normalize_explicit_category(listing.get("category"))
            counts[category or "missing"] += 1
        return counts
