"""Listing data models shared by the services and the web layer.

Persisted listings stay plain JSON dicts so legacy and unknown fields survive
a round trip through the record store. The dataclasses here describe the
resolved values the services compute from those dicts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

# Categories
BATPLASS = "batplass"  # boat mooring
BOBILPLASS = "bobilplass"  # motorhome / camper spot
CAMPINGPLASS = "campingplass"  # camping / tent spot

CATEGORIES = (BATPLASS, BOBILPLASS, CAMPINGPLASS)
ALL_CATEGORIES = "alle"

CATEGORY_LABELS = {
    ALL_CATEGORIES: "Alle",
    BATPLASS: "Båtplass",
    BOBILPLASS: "Bobilplass",
    CAMPINGPLASS: "Campingplass",
}

DEFAULT_CURRENCY = "NOK"

# Amenity badges offered by the wizard
BADGES = {
    "strom": "Strøm",
    "vann": "Vann",
    "toalett": "Toalett",
    "dusj": "Dusj",
    "wifi": "Wi-Fi",
    "naer_sjo": "Nær sjø",
    "familievennlig": "Familievennlig",
    "rolig": "Rolig område",
    "enkel_adkomst": "Enkel adkomst",
    "hund_tillatt": "Hund tillatt",
}


def badge_label(key: str) -> str:
    """Human-readable label for a badge key, or the key itself if unknown."""
    return BADGES.get(key, key)


class SortMode:
    """Sort orders understood by the explore view."""

    NEWEST = "newest"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"

    ALL = (NEWEST, PRICE_ASC, PRICE_DESC)


@dataclass
class Price:
    """Resolved nightly price."""

    per_night: float
    currency: str = DEFAULT_CURRENCY

    def to_dict(self) -> Dict[str, Any]:
        return {"perNight": self.per_night, "currency": self.currency}


@dataclass
class ListingImage:
    """One image reference, in display order."""

    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url}


@dataclass
class FilterSpec:
    """
    What the explore view should show.

    Built from URL query parameters or UI controls; never persisted.
    """

    category: str = ALL_CATEGORIES
    query: str = ""
    sort: str = SortMode.NEWEST
    favorites_only: bool = False

    TRUTHY = ("1", "true", "yes", "on")

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "FilterSpec":
        """
        Parse explore query parameters.

        Unknown categories fall back to "alle" and unknown sort modes to
        "newest", matching how the explore page treats hand-edited URLs.

        Args:
            params: Mapping with optional 'category', 'q', 'sort' and 'favorites'

        Returns:
            FilterSpec
        """
        raw_category = str(params.get("category") or "").strip().lower()
        if raw_category in ("batplass", "båtplass"):
            category = BATPLASS
        elif raw_category in (BOBILPLASS, CAMPINGPLASS):
            category = raw_category
        else:
            category = ALL_CATEGORIES

        sort = str(params.get("sort") or "").strip()
        if sort not in SortMode.ALL:
            sort = SortMode.NEWEST

        favorites = str(params.get("favorites") or "").strip().lower()

        return cls(
            category=category,
            query=str(params.get("q") or ""),
            sort=sort,
            favorites_only=favorites in cls.TRUTHY,
        )

    def is_default(self) -> bool:
        """True when no filter is active."""
        return (
            self.category == ALL_CATEGORIES
            and not self.query.strip()
            and self.sort == SortMode.NEWEST
            and not self.favorites_only
        )


@dataclass
class BuildResult:
    """Outcome of turning a draft into a listing: either a listing or problems."""

    listing: Optional[Dict[str, Any]] = None
    problems: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems and self.listing is not None


@dataclass
class MigrationReport:
    """Before/after category counts from a classifier migration run."""

    total: int = 0
    changed: int = 0
    already_had: int = 0
    before_counts: Dict[str, int] = field(
        default_factory=lambda: {BATPLASS: 0, BOBILPLASS: 0, CAMPINGPLASS: 0, "missing": 0}
    )
    after_counts: Dict[str, int] = field(
        default_factory=lambda: {BATPLASS: 0, BOBILPLASS: 0, CAMPINGPLASS: 0}
    )
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "total": self.total,
            "changed": self.changed,
            "alreadyHad": self.already_had,
            "beforeCounts": dict(self.before_counts),
            "afterCounts": dict(self.after_counts),
            "dryRun": self.dry_run,
        }
