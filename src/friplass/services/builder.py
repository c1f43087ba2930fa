"""Turn drafts into persist-ready listings."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..models.listing import BuildResult
from .classifier import resolve_category
from .normalizer import canonicalize, merge, resolve_images

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 5
MIN_DESCRIPTION_LENGTH = 20

PROBLEM_TITLE = f"Tittel må være minst {MIN_TITLE_LENGTH} tegn."
PROBLEM_DESCRIPTION = f"Beskrivelse må være minst {MIN_DESCRIPTION_LENGTH} tegn."
PROBLEM_IMAGES = "Minst ett bilde må lastes opp."


def now_iso(moment: Optional[datetime] = None) -> str:
    """UTC timestamp shaped like JavaScript's toISOString(): 2024-01-01T00:00:00.000Z."""
    moment = moment or datetime.now(timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def new_id() -> str:
    return str(uuid.uuid4())


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_draft(draft: Any) -> List[str]:
    """
    Check a draft's minimum content.

    Every problem is reported, not just the first, so the wizard can show
    them together.

    Args:
        draft: Raw draft object

    Returns:
        Human-readable problems; empty when the draft can be published
    """
    draft = draft if isinstance(draft, Mapping) else {}
    problems = []
    if len(_clean(draft.get("title"))) < MIN_TITLE_LENGTH:
        problems.append(PROBLEM_TITLE)
    if len(_clean(draft.get("description"))) < MIN_DESCRIPTION_LENGTH:
        problems.append(PROBLEM_DESCRIPTION)
    if not resolve_images(draft):
        problems.append(PROBLEM_IMAGES)
    return problems


def build_listing(draft: Any, now: Optional[str] = None) -> BuildResult:
    """
    Build a new listing from a draft.

    Validation runs first; a failing draft yields problems and no listing.
    On success identity fields are filled in when absent, every overloaded
    field is written in canonical form to all of its aliases and the
    category is resolved. The draft itself is left untouched.

    Args:
        draft: Raw draft object (missing and extra fields are tolerated)
        now: Creation timestamp override, mostly for tests

    Returns:
        BuildResult with either the listing or the problems
    """
    problems = validate_draft(draft)
    if problems:
        logger.debug(f"Draft rejected: {problems}")
        return BuildResult(problems=problems)

    listing = canonicalize(draft, complete=True)
    listing["id"] = _clean(listing.get("id")) or new_id()
    listing["ownerDeviceId"] = _clean(listing.get("ownerDeviceId")) or new_id()
    listing["createdAt"] = _clean(listing.get("createdAt")) or now or now_iso()
    listing["title"] = _clean(listing.get("title"))
    listing["description"] = _clean(listing.get("description"))
    listing["category"] = resolve_category(listing)

    return BuildResult(listing=listing)


def apply_update(
    existing: Mapping[str, Any], patch: Any, now: Optional[str] = None
) -> Dict[str, Any]:
    """
    Apply a patch to a stored listing.

    Patch fields win over stored ones, except ``id`` and ``createdAt`` which
    always keep their stored values. ``updatedAt`` is set, the main image is
    repaired if the patch removed it, and the category is re-resolved.

    Args:
        existing: The stored listing
        patch: Fields to overwrite
        now: Update timestamp override, mostly for tests

    Returns:
        A new listing dict; ``existing`` is not modified
    """
    updated = merge(existing, patch, prepend_main_image=False)

    updated["id"] = existing.get("id")
    if existing.get("createdAt") is not None:
        updated["createdAt"] = existing["createdAt"]
    else:
        updated.pop("createdAt", None)
    updated["updatedAt"] = now or now_iso()

    for key in ("title", "description"):
        if isinstance(updated.get(key), str):
            updated[key] = updated[key].strip()
    updated["category"] = resolve_category(updated)

    return updated
