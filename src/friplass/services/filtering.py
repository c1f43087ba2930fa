"""Filtering and sorting for the explore, favorites and my-listings views."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..models.listing import ALL_CATEGORIES, BATPLASS, FilterSpec, SortMode
from .classifier import is_boat_query, resolve_category
from .normalizer import (
    normalize_search_text,
    resolve_address,
    resolve_badges,
    resolve_price,
)

Listing = Dict[str, Any]


@dataclass
class _Resolved:
    """A listing with the values the filters and sorts look at."""

    listing: Listing
    address: str
    badges: List[str]
    category: str
    price: Optional[float]
    created_ts: float


def parse_timestamp(value: Any) -> float:
    """
    Seconds since the epoch for an ISO-8601 string.

    Missing or unparseable values count as the epoch itself. Naive
    timestamps are read as UTC.
    """
    if not isinstance(value, str) or not value.strip():
        return 0.0
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return 0.0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def display_category(listing: Mapping[str, Any]) -> str:
    """The category a listing is shown and filtered under."""
    return resolve_category(listing)


def _resolve(listing: Listing) -> _Resolved:
    price = resolve_price(listing)
    return _Resolved(
        listing=listing,
        address=resolve_address(listing),
        badges=resolve_badges(listing),
        category=display_category(listing),
        price=price.per_night if price else None,
        created_ts=parse_timestamp(listing.get("createdAt")),
    )


def _haystack(item: _Resolved) -> str:
    listing = item.listing
    parts = [
        listing.get("title"),
        listing.get("description"),
        item.address,
        " ".join(item.badges),
        listing.get("category"),
    ]
    return " ".join(normalize_search_text(part) for part in parts)


def _sort_newest(items: List[_Resolved]) -> List[_Resolved]:
    # Two stable passes: id descending as the tie-breaker, then newest first
    by_id = sorted(items, key=lambda item: str(item.listing.get("id") or ""), reverse=True)
    return sorted(by_id, key=lambda item: item.created_ts, reverse=True)


def _sort_by_price(items: List[_Resolved], descending: bool) -> List[_Resolved]:
    priced = [item for item in items if item.price is not None]
    unpriced = [item for item in items if item.price is None]
    return sorted(priced, key=lambda item: item.price, reverse=descending) + unpriced


def filter_and_sort(
    listings: Iterable[Listing],
    filters: FilterSpec,
    favorites: Iterable[str] = (),
) -> List[Listing]:
    """
    The listings a view should show, in display order.

    Steps: category filter, favorites filter, free-text filter, sort. The
    free-text filter matches the normalized query against title,
    description, address, badges and raw category; a pier/dock/marina query
    also matches every boat listing. Listings without a price sort last in
    both price orders.

    Deterministic and side-effect free: the input listings are not modified
    and the same inputs always give the same order.

    Args:
        listings: The full collection
        filters: What to show
        favorites: Favorited listing ids for this device

    Returns:
        The selected listings (the same dict objects, reordered)
    """
    items = [_resolve(listing) for listing in listings if isinstance(listing, Mapping)]

    if filters.category != ALL_CATEGORIES:
        items = [item for item in items if item.category == filters.category]

    if filters.favorites_only:
        favorite_ids = {value for value in favorites if isinstance(value, str)}
        items = [
            item
            for item in items
            if isinstance(item.listing.get("id"), str) and item.listing["id"] in favorite_ids
        ]

    query = normalize_search_text(filters.query)
    if query:
        boat_query = is_boat_query(query)
        items = [
            item
            for item in items
            if query in _haystack(item) or (boat_query and item.category == BATPLASS)
        ]

    if filters.sort == SortMode.PRICE_ASC:
        items = _sort_by_price(items, descending=False)
    elif filters.sort == SortMode.PRICE_DESC:
        items = _sort_by_price(items, descending=True)
    else:
        items = _sort_newest(items)

    return [item.listing for item in items]


def owned_by(listings: Iterable[Listing], device_id: str) -> List[Listing]:
    """
    The "my listings" view for a device, newest first.

    Listings created before owner ids existed have none and are shown to
    every device.
    """
    device_id = (device_id or "").strip()
    mine = []
    for listing in listings:
        owner = listing.get("ownerDeviceId")
        owner = owner.strip() if isinstance(owner, str) else ""
        if not owner or (device_id and owner == device_id):
            mine.append(listing)
    return filter_and_sort(mine, FilterSpec())
