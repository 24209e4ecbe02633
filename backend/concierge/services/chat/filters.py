from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from concierge.core.logging import get_logger
from concierge.schemas.session import ClarifierOption
from concierge.services.catalog.models import RetrievalResult
from concierge.services.chat.clarifier_config import DEFAULT_CLARIFIER_CHOICES

logger = get_logger(__name__)

PRICE_BUCKETS: Tuple[Tuple[float, str], ...] = (
    (50, "Under $50"),
    (100, "$50-$100"),
    (150, "$100-$150"),
    (200, "$150-$200"),
)
TOP_PRICE_BUCKET = "$200+"

STANDARD_PRICE_BUCKETS: Set[str] = {label for _, label in PRICE_BUCKETS} | {TOP_PRICE_BUCKET, "$50-$200"}

_UNDER_RE = re.compile(r"\b(?:under|below|less than|cheaper than|max|up to)\s*\$?\s?(\d+)", re.IGNORECASE)
_OVER_RE = re.compile(r"\b(?:over|above|more than|at least|min)\s*\$?\s?(\d+)", re.IGNORECASE)
_RANGE_RE = re.compile(r"\$?\s?(\d+)\s*(?:-|to|and)\s*\$?\s?(\d+)", re.IGNORECASE)
_BETWEEN_RE = re.compile(r"\bbetween\s+\$?\s?(\d+)\s+and\s+\$?\s?(\d+)", re.IGNORECASE)

_PRICE_BUCKET_FORMATS = (
    re.compile(r"^Under \$\d+$", re.IGNORECASE),
    re.compile(r"^Over \$\d+$", re.IGNORECASE),
    re.compile(r"^\$\d+-\$\d+$"),
    re.compile(r"^\$\d+\+$"),
)


def bucketize_price(price: Optional[float]) -> Optional[str]:
    if price is None:
        return None
    try:
        value = float(price)
    except (TypeError, ValueError):
        return None
    if value != value:  # NaN
        return None
    for ceiling, label in PRICE_BUCKETS:
        if value <= ceiling:
            return label
    return TOP_PRICE_BUCKET


def canonicalise_filter_value(facet: str, raw: str) -> str:
    trimmed = str(raw or "").strip()
    if not trimmed:
        return ""
    if facet in {"price_bucket", "vendor"}:
        return trimmed
    slug = re.sub(r"[^a-z0-9]+", " ", trimmed.lower()).strip()
    return re.sub(r"\s+", "_", slug)


def extract_price_filter(text: str) -> Optional[str]:
    """Turn a price expression in free text into a price_bucket filter value."""
    content = str(text or "")
    between = _BETWEEN_RE.search(content)
    if between:
        low, high = sorted((int(between.group(1)), int(between.group(2))))
        return f"${low}-${high}"
    under = _UNDER_RE.search(content)
    if under:
        return f"Under ${int(under.group(1))}"
    over = _OVER_RE.search(content)
    if over:
        return f"Over ${int(over.group(1))}"
    if "$" in content:
        ranged = _RANGE_RE.search(content)
        if ranged:
            low, high = sorted((int(ranged.group(1)), int(ranged.group(2))))
            if low != high:
                return f"${low}-${high}"
    return None


def infer_price_bucket_from_input(text: str) -> Optional[str]:
    lower = str(text or "").lower()
    if any(word in lower for word in ("premium", "expensive", "high-end", "top tier")):
        return TOP_PRICE_BUCKET
    if any(word in lower for word in ("budget", "cheap", "affordable", "low")):
        return "Under $50"
    numbers = [int(value) for value in re.findall(r"\d+", lower)]
    if not numbers:
        return None
    wants_above = any(word in lower for word in ("over", "above", "more than", "greater than"))
    target = max(numbers) if wants_above else min(numbers)
    return bucketize_price(target)


def apply_manual_facet_value(facet: str, raw: str) -> Optional[str]:
    if facet == "price_bucket":
        return extract_price_filter(raw) or infer_price_bucket_from_input(raw)
    return canonicalise_filter_value(facet, raw) or None


def detect_brand(text: str, known_brands: Iterable[str]) -> Optional[str]:
    lowered = str(text or "").lower()
    for brand in known_brands:
        name = str(brand or "").strip()
        if name and re.search(rf"\b{re.escape(name.lower())}\b", lowered):
            return name
    return None


def is_valid_price_bucket(value: str) -> bool:
    trimmed = str(value or "").strip()
    if trimmed in STANDARD_PRICE_BUCKETS:
        return True
    return any(pattern.match(trimmed) for pattern in _PRICE_BUCKET_FORMATS)


def validate_initial_filters(filters: Dict[str, str]) -> Tuple[Dict[str, str], List[Dict[str, str]]]:
    """Drop malformed values before they reach retrieval."""
    cleaned = dict(filters)
    removed: List[Dict[str, str]] = []
    price = cleaned.get("price_bucket")
    if price is not None and not is_valid_price_bucket(price):
        removed.append({"facet": "price_bucket", "value": price})
        cleaned.pop("price_bucket", None)
    for facet, value in list(cleaned.items()):
        if not str(value or "").strip():
            removed.append({"facet": facet, "value": str(value or "")})
            cleaned.pop(facet, None)
    return cleaned, removed


@dataclass
class SanitizeResult:
    filters: Dict[str, str]
    removed: List[Dict[str, str]] = field(default_factory=list)


def _allowed_values(
    facet: str,
    retrieval: RetrievalResult,
    canonical_clarifiers: Dict[str, List[ClarifierOption]],
) -> Set[str]:
    allowed: Set[str] = set()
    for option in canonical_clarifiers.get(facet, []) + DEFAULT_CLARIFIER_CHOICES.get(facet, []):
        allowed.add(canonicalise_filter_value(facet, option.value))
    for value in retrieval.facets.get(facet, set()):
        allowed.add(canonicalise_filter_value(facet, value))
    for product in retrieval.products:
        if facet == "vendor" and product.vendor:
            allowed.add(canonicalise_filter_value(facet, product.vendor))
        elif facet == "product_type" and product.product_type:
            allowed.add(canonicalise_filter_value(facet, product.product_type))
        elif facet == "price_bucket":
            bucket = bucketize_price(product.price)
            if bucket:
                allowed.add(bucket)
        elif facet == "tag":
            for tag in product.tags:
                allowed.add(canonicalise_filter_value(facet, tag))
    allowed.discard("")
    return allowed


def sanitize_filters(
    active_filters: Dict[str, str],
    retrieval: RetrievalResult,
    canonical_clarifiers: Optional[Dict[str, List[ClarifierOption]]] = None,
) -> SanitizeResult:
    """Drop filters whose value no longer belongs to the facet's allowed set.

    Facets with no known allowed set are kept. Price buckets expressed as
    open bounds ("Under $300") are user constraints, not catalog values, and
    are kept while they stay well-formed.
    """
    clarifiers = canonical_clarifiers or {}
    sanitized = dict(active_filters)
    removed: List[Dict[str, str]] = []
    for facet, raw_value in active_filters.items():
        if facet == "price_bucket" and is_valid_price_bucket(raw_value):
            continue
        allowed = _allowed_values(facet, retrieval, clarifiers)
        if allowed and canonicalise_filter_value(facet, raw_value) not in allowed:
            sanitized.pop(facet, None)
            removed.append({"facet": facet, "value": raw_value})
    if removed:
        logger.info("sanitizer dropped stale filters: %s", removed)
    return SanitizeResult(filters=sanitized, removed=removed)
