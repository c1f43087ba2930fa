"""Field normalization for listings and drafts.

Several listing concepts have been stored under more than one field name over
time (address, price, images, badges). The resolvers here read any of those
shapes and produce one canonical value; ``canonicalize`` writes the canonical
value back to every alias so the record stays consistent.

Every function in this module is total: malformed input degrades to
"not present" and never raises.
"""

import copy
import math
import re
import unicodedata
from typing import Any, Dict, List, Mapping, Optional

from ..models.listing import DEFAULT_CURRENCY, ListingImage, Price

_WHITESPACE = re.compile(r"\s+")


def _text(value: Any) -> str:
    """Stringify scalars; anything else counts as empty."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def normalize_search_text(value: Any) -> str:
    """
    Normalize text for comparison.

    Lowercases, decomposes and strips combining marks (so "båt" == "bat"),
    collapses whitespace and trims. Category inference and free-text search
    both go through this function.
    """
    decomposed = unicodedata.normalize("NFD", _text(value).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", stripped).strip()


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def resolve_address(obj: Any) -> str:
    """Address from location.address, then locationText, then address."""
    obj = _as_mapping(obj)
    location = _as_mapping(obj.get("location"))
    for candidate in (location.get("address"), obj.get("locationText"), obj.get("address")):
        text = _text(candidate).strip()
        if text:
            return text
    return ""


def resolve_price(obj: Any) -> Optional[Price]:
    """
    Nightly price from price.perNight, then the legacy pricePerNight.

    Returns None when neither is a finite number; a missing price is not zero.
    """
    obj = _as_mapping(obj)
    price = _as_mapping(obj.get("price"))

    per_night = None
    for candidate in (price.get("perNight"), obj.get("pricePerNight")):
        if _is_finite_number(candidate):
            per_night = candidate
            break
    if per_night is None:
        return None

    currency = (
        _text(price.get("currency")).strip()
        or _text(obj.get("currency")).strip()
        or DEFAULT_CURRENCY
    )
    return Price(per_night=per_night, currency=currency)


def _image_urls(raw: Any) -> List[str]:
    """Coerce a list of URL strings and/or {url} objects, dropping blanks."""
    if not isinstance(raw, list):
        return []
    urls = []
    for item in raw:
        if isinstance(item, str):
            url = item
        elif isinstance(item, Mapping) and isinstance(item.get("url"), str):
            url = item["url"]
        else:
            continue
        url = url.strip()
        if url:
            urls.append(url)
    return urls


def _stored_image_urls(obj: Mapping[str, Any]) -> List[str]:
    if isinstance(obj.get("images"), list):
        return _image_urls(obj["images"])
    return _image_urls(obj.get("imageUrls"))


def _explicit_main_image(obj: Mapping[str, Any]) -> str:
    return _text(obj.get("mainImageUrl")).strip()


def resolve_images(obj: Any) -> List[ListingImage]:
    """
    Images in display order.

    Accepts ``images`` (strings or {url} objects) or the legacy ``imageUrls``.
    An explicit mainImageUrl that is not in the list is prepended.
    """
    obj = _as_mapping(obj)
    urls = _stored_image_urls(obj)
    main = _explicit_main_image(obj)
    if main and main not in urls:
        urls.insert(0, main)
    return [ListingImage(url=url) for url in urls]


def resolve_main_image(obj: Any) -> Optional[str]:
    """The explicit mainImageUrl if it is one of the images, else the first image."""
    urls = [image.url for image in resolve_images(obj)]
    main = _explicit_main_image(_as_mapping(obj))
    if main and main in urls:
        return main
    return urls[0] if urls else None


def resolve_badges(obj: Any) -> List[str]:
    """Union of badges and suitability, trimmed, deduplicated, first-seen order."""
    obj = _as_mapping(obj)
    seen: Dict[str, None] = {}
    for key in ("badges", "suitability"):
        values = obj.get(key)
        if not isinstance(values, list):
            continue
        for value in values:
            tag = _text(value).strip()
            if tag:
                seen.setdefault(tag, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Write-back
# ---------------------------------------------------------------------------


def _touches_address(obj: Mapping[str, Any]) -> bool:
    location = obj.get("location")
    return (
        "locationText" in obj
        or "address" in obj
        or (isinstance(location, Mapping) and "address" in location)
    )


def _touches_price(obj: Mapping[str, Any]) -> bool:
    return "price" in obj or "pricePerNight" in obj


def _write_address(result: Dict[str, Any], address: str) -> None:
    location = result.get("location")
    location = dict(location) if isinstance(location, Mapping) else {}
    location["address"] = address
    result["location"] = location
    result["locationText"] = address
    result["address"] = address


def _write_price(result: Dict[str, Any]) -> None:
    price = resolve_price(result)
    if price is None:
        return
    result["price"] = price.to_dict()
    result["pricePerNight"] = price.per_night


def _write_images(result: Dict[str, Any], repair_only: bool = False) -> None:
    """
    Store images as [{url}] and keep mainImageUrl pointing at one of them.

    With repair_only the stored list is kept as is and a dangling
    mainImageUrl falls back to the first image instead of being prepended.
    """
    if repair_only:
        urls = _stored_image_urls(result)
    else:
        urls = [image.url for image in resolve_images(result)]

    result["images"] = [{"url": url} for url in urls]
    result.pop("imageUrls", None)

    main = _explicit_main_image(result)
    if main not in urls:
        main = urls[0] if urls else ""
    if main:
        result["mainImageUrl"] = main
    else:
        result.pop("mainImageUrl", None)


def _write_badges(result: Dict[str, Any]) -> None:
    badges = resolve_badges(result)
    result["badges"] = badges
    result["suitability"] = list(badges)


def canonicalize(
    obj: Any, repair_images_only: bool = False, complete: bool = False
) -> Dict[str, Any]:
    """
    Return a copy of ``obj`` with every overloaded field in canonical form.

    - address aliases all hold the resolved address (when any alias exists)
    - price and pricePerNight hold the resolved price (when there is one)
    - images are [{url}] and mainImageUrl is one of them
    - badges and suitability both hold the union (when either exists)

    With ``complete`` the address and badge aliases are written even when
    the input has none of them, as a persisted listing needs. The input is
    never modified.
    """
    result = copy.deepcopy(dict(obj)) if isinstance(obj, Mapping) else {}

    if complete or _touches_address(result):
        _write_address(result, resolve_address(result))
    _write_price(result)
    _write_images(result, repair_only=repair_images_only)
    if complete or "badges" in result or "suitability" in result:
        _write_badges(result)
    return result


def canonicalize_patch(patch: Any) -> Dict[str, Any]:
    """
    Canonicalize only the concepts a partial update carries.

    A patch that sets ``locationText`` alone must win over a stored
    ``location.address`` once merged, so every alias of a touched concept is
    filled in from the patch before the merge. Concepts the patch does not
    mention are left out so the stored values survive.

    Merge the result over the stored record, then run
    ``canonicalize(merged, repair_images_only=True)``.
    """
    result = copy.deepcopy(dict(patch)) if isinstance(patch, Mapping) else {}

    if _touches_address(result):
        _write_address(result, resolve_address(result))
    if _touches_price(result):
        _write_price(result)
    if "images" in result or "imageUrls" in result:
        # mainImageUrl is repaired after the merge, against the merged images
        result["images"] = [image.to_dict() for image in resolve_images(result)]
        result.pop("imageUrls", None)
    if "badges" in result or "suitability" in result:
        _write_badges(result)
    return result


def merge(stored: Any, patch: Any, prepend_main_image: bool = True) -> Dict[str, Any]:
    """
    Shallow-merge ``patch`` over ``stored`` without losing either side.

    Keys in the patch overwrite the same keys in storage, keys it does not
    carry are kept, and the merged record comes back canonical. A patch
    that sets a price alias to something that is not a price clears both
    aliases.

    Args:
        stored: The stored record
        patch: Fields to overwrite
        prepend_main_image: When the patch sets mainImageUrl to a URL that
                            is not among the images, prepend it (drafts).
                            Otherwise point mainImageUrl at the first image
                            (updates).

    Returns:
        A new canonical dict
    """
    base = dict(stored) if isinstance(stored, Mapping) else {}
    patch = patch if isinstance(patch, Mapping) else {}
    canonical_patch = canonicalize_patch(patch)

    merged = {**base, **canonical_patch}
    if _touches_price(patch) and resolve_price(canonical_patch) is None:
        merged.pop("price", None)
        merged.pop("pricePerNight", None)

    repair_only = not (prepend_main_image and _explicit_main_image(patch))
    return canonicalize(merged, repair_images_only=repair_only)
