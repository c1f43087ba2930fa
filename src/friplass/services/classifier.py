"""Category inference for listings.

A listing's category is its explicit category when that is recognized,
otherwise it is inferred from title, description and address by keyword
families checked in a fixed order: boat, then motorhome, then camping.
Text matching no family falls back to campingplass.
"""

from typing import Any, Iterable, Mapping, Optional, Tuple

from ..models.listing import BATPLASS, BOBILPLASS, CAMPINGPLASS
from .normalizer import normalize_search_text, resolve_address


def _keywords(words: Iterable[str]) -> Tuple[str, ...]:
    return tuple(normalize_search_text(word) for word in words)


# Checked in this order; the first family with a hit wins.
KEYWORD_FAMILIES = (
    (
        BATPLASS,
        _keywords([
            "båt", "båtplass", "brygge", "brygga", "kai", "marina",
            "naust", "båthavn", "flytebrygge", "fortøyn",
        ]),
    ),
    (
        BOBILPLASS,
        _keywords(["bobil", "camper", "motorhome", "caravan"]),
    ),
    (
        CAMPINGPLASS,
        _keywords([
            "camping", "campingvogn", "telt", "teltplass",
            "hengekøye", "hammock", "fricamping",
        ]),
    ),
)

FALLBACK_CATEGORY = CAMPINGPLASS

CATEGORY_SYNONYMS = {
    "batplass": BATPLASS,
    "bat": BATPLASS,
    "bobilplass": BOBILPLASS,
    "bobil": BOBILPLASS,
    "campingplass": CAMPINGPLASS,
    "teltplass": CAMPINGPLASS,
    "telt": CAMPINGPLASS,
    "campingvogn": CAMPINGPLASS,
}

# Queries using these words also match boat listings whose text lacks them
BOAT_QUERY_TERMS = _keywords(["brygge", "brygga", "kai", "marina", "flytebrygge", "båthavn"])


def normalize_explicit_category(raw: Any) -> Optional[str]:
    """
    Map an explicitly set category to its canonical value.

    Matching is exact on normalized text, so "Båtplass" and "batplass" are the
    same. Returns None for empty or unrecognized input; callers fall back to
    inference.
    """
    return CATEGORY_SYNONYMS.get(normalize_search_text(raw))


def infer_category(title: Any, description: Any, address: Any) -> str:
    """Infer a category from free text; never returns an empty value."""
    haystack = normalize_search_text(f"{_str(title)} {_str(description)} {_str(address)}")
    for category, keywords in KEYWORD_FAMILIES:
        if any(keyword in haystack for keyword in keywords):
            return category
    return FALLBACK_CATEGORY


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def resolve_category(listing: Any) -> str:
    """Explicit category if recognized, else inferred from the listing's text."""
    listing = listing if isinstance(listing, Mapping) else {}
    explicit = normalize_explicit_category(listing.get("category"))
    if explicit:
        return explicit
    return infer_category(
        listing.get("title"),
        listing.get("description"),
        resolve_address(listing),
    )


def is_boat_query(normalized_query: str) -> bool:
    """True if an already-normalized query uses pier/dock/marina vocabulary."""
    return any(term in normalized_query for term in BOAT_QUERY_TERMS)
