from .listing import (
    ALL_CATEGORIES,
    BADGES,
    BATPLASS,
    BOBILPLASS,
    CAMPINGPLASS,
    CATEGORIES,
    CATEGORY_LABELS,
    DEFAULT_CURRENCY,
    BuildResult,
    FilterSpec,
    ListingImage,
    MigrationReport,
    Price,
    SortMode,
    badge_label,
)

__all__ = [
    "ALL_CATEGORIES",
    "BADGES",
    "BATPLASS",
    "BOBILPLASS",
    "CAMPINGPLASS",
    "CATEGORIES",
    "CATEGORY_LABELS",
    "DEFAULT_CURRENCY",
    "BuildResult",
    "FilterSpec",
    "ListingImage",
    "MigrationReport",
    "Price",
    "SortMode",
    "badge_label",
]
