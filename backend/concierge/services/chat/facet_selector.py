from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Set

from concierge.services.catalog.models import RetrievalResult
from concierge.services.chat.clarifier_config import FACET_PRIORITY

ENTROPY_MIN = 0.3
MIN_FACET_VALUES = 2
MAX_FACET_VALUES = 6
MAX_ASKS_PER_FACET = 2
VENDOR_MIN_COVERAGE = 0.5
VENDOR_MIN_DISTINCT = 2

_BRAND_MENTION_RE = re.compile(r"\bbrand\b|\bvendor\b|^\s*@", re.IGNORECASE)


@dataclass(frozen=True)
class FacetChoice:
    facet: str
    values: List[str]
    entropy: float


def calculate_entropy(counts: Mapping[str, int]) -> float:
    """Shannon entropy (bits) of a value distribution."""
    total = sum(count for count in counts.values() if count > 0)
    if total <= 0:
        return 0.0
    entropy = 0.0
    for count in counts.values():
        if count <= 0:
            continue
        probability = count / total
        entropy -= probability * math.log2(probability)
    return entropy


def exhausted_facets(clarifier_history: Mapping[str, int]) -> Set[str]:
    return {facet for facet, count in clarifier_history.items() if int(count or 0) >= MAX_ASKS_PER_FACET}


def _user_mentioned_brand(user_message: str, active_filters: Mapping[str, str]) -> bool:
    if active_filters.get("vendor"):
        return True
    return bool(user_message and _BRAND_MENTION_RE.search(user_message))


def _vendor_is_askable(
    retrieval: RetrievalResult,
    *,
    first_clarification: bool,
    brand_mentioned: bool,
) -> bool:
    vendors = [product.vendor for product in retrieval.products if product.vendor]
    coverage = len(vendors) / max(len(retrieval.products), 1)
    distinct = len(set(vendors))
    if coverage < VENDOR_MIN_COVERAGE or distinct < VENDOR_MIN_DISTINCT:
        return False
    if first_clarification and not brand_mentioned:
        return False
    return True


def _price_key(value: str) -> float:
    if value.lower().startswith("under"):
        return -1.0
    digits = re.findall(r"\d+", value)
    return float(digits[0]) if digits else float("inf")


def _ordered_values(facet: str, values: Set[str]) -> List[str]:
    if facet == "price_bucket":
        return sorted(values, key=lambda value: (_price_key(value), value))
    return sorted(values)


def _priority(facet: str) -> int:
    try:
        return FACET_PRIORITY.index(facet)
    except ValueError:
        return len(FACET_PRIORITY)


def select_best_facet(
    retrieval: RetrievalResult,
    *,
    clarifier_history: Mapping[str, int],
    active_filters: Mapping[str, str],
    user_message: str = "",
    blocked: Iterable[str] = (),
    entropy_min: float = ENTROPY_MIN,
) -> Optional[FacetChoice]:
    """Pick the facet whose answer would split the result set the most.

    Facets asked MAX_ASKS_PER_FACET times, facets already pinned by an active
    filter, and explicitly blocked facets (an open clarifier) are never chosen.
    """
    excluded = exhausted_facets(clarifier_history) | set(active_filters.keys()) | set(blocked)
    first_clarification = sum(int(count or 0) for count in clarifier_history.values()) == 0
    brand_mentioned = _user_mentioned_brand(user_message, active_filters)

    candidates: List[FacetChoice] = []
    for facet, raw_values in retrieval.facets.items():
        if facet in excluded:
            continue
        values = _ordered_values(facet, {str(value).strip() for value in raw_values if str(value).strip()})
        if len(values) < MIN_FACET_VALUES or len(values) > MAX_FACET_VALUES:
            continue
        if facet == "vendor" and not _vendor_is_askable(
            retrieval, first_clarification=first_clarification, brand_mentioned=brand_mentioned
        ):
            continue

        # Only distinct values are known, so treat the distribution as uniform.
        counts: Dict[str, int] = {value: 1 for value in values}
        entropy = calculate_entropy(counts)
        if entropy < entropy_min:
            continue
        candidates.append(FacetChoice(facet=facet, values=values, entropy=entropy))

    if not candidates:
        return None
    candidates.sort(key=lambda choice: (-choice.entropy, _priority(choice.facet), choice.facet))
    return candidates[0]
