from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from concierge.schemas.session import ClarifierOption

MAX_CLARIFIER_OPTIONS = 6
MIN_CLARIFIER_OPTIONS = 2

DEFAULT_CLARIFIER_CHOICES: Dict[str, List[ClarifierOption]] = {
    "style": [
        ClarifierOption(label="All Mountain", value="all_mountain", aliases=["all mountain", "all-mountain"]),
        ClarifierOption(label="Freestyle", value="freestyle"),
        ClarifierOption(label="Powder", value="powder"),
        ClarifierOption(label="Park", value="park", aliases=["terrain park"]),
    ],
    "price_bucket": [
        ClarifierOption(label="Under $50", value="Under $50", aliases=["under 50", "under fifty"]),
        ClarifierOption(label="$50 - $200", value="$50-$200", aliases=["$50 to $200", "50-200"]),
        ClarifierOption(label="$200+", value="$200+", aliases=["200+", "$200 plus"]),
    ],
}

FALLBACK_FACET_PRIORITY: List[str] = ["style", "price_bucket"]

# Tie-break order when two facets carry the same entropy.
FACET_PRIORITY: List[str] = ["product_type", "style", "use_case", "price_bucket", "tag", "vendor"]

FACET_LABELS: Dict[str, str] = {
    "price_bucket": "budget",
    "product_type": "type",
    "style": "style",
    "use_case": "use",
    "vendor": "brand",
    "tag": "feature",
}

_MANUAL_PROMPTS: Dict[str, str] = {
    "price_bucket": "Sure thing. What price range should I focus on? Just type it in and I'll adjust.",
    "style": "No problem. Tell me the vibe or style you have in mind and I'll tailor the picks.",
    "use_case": "Got it. What will you mostly use it for? Type a quick note and I'll refine the options.",
    "vendor": "Happy to! Let me know which brands you prefer and I'll prioritise them.",
}


def humanize_facet_value(value: str) -> str:
    parts = [part for part in re.split(r"[_-]", str(value or "")) if part]
    if not parts:
        return str(value or "")
    return " ".join(part[:1].upper() + part[1:] for part in parts)


def describe_facet(facet: str) -> str:
    return FACET_LABELS.get(facet, facet.replace("_", " "))


def manual_prompt_for_facet(facet: str) -> str:
    return _MANUAL_PROMPTS.get(facet, "All good. Type what you're looking for and I'll take it from there.")


def _keeps_raw_value(facet: str) -> bool:
    return facet in {"price_bucket", "vendor"}


def build_options(facet: str, values: Iterable[str]) -> List[ClarifierOption]:
    """Options for a facet, preferring curated labels when the value is known."""
    curated = {option.value: option for option in DEFAULT_CLARIFIER_CHOICES.get(facet, [])}
    options: List[ClarifierOption] = []
    seen = set()
    for raw in values:
        value = str(raw or "").strip()
        if not value or value in seen:
            continue
        seen.add(value)
        if value in curated:
            options.append(curated[value])
        else:
            label = value if _keeps_raw_value(facet) else humanize_facet_value(value)
            options.append(ClarifierOption(label=label, value=value))
        if len(options) >= MAX_CLARIFIER_OPTIONS:
            break
    return options


def fallback_options(facet: str) -> List[ClarifierOption]:
    return list(DEFAULT_CLARIFIER_CHOICES.get(facet, []))[:MAX_CLARIFIER_OPTIONS]


def pick_fallback_facet(excluded: Iterable[str]) -> Optional[str]:
    blocked = set(excluded)
    for facet in FALLBACK_FACET_PRIORITY:
        if facet not in blocked and DEFAULT_CLARIFIER_CHOICES.get(facet):
            return facet
    return None
