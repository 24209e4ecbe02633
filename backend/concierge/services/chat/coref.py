"""Topic anchoring and pronoun resolution across turns."""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from concierge.schemas.chat import StoreContext
from concierge.schemas.session import ClarifierOption, TopicAnchor
from concierge.services.catalog.models import ProductCandidate
from concierge.services.chat.filters import detect_brand
from concierge.services.chat.topic_classifier import is_self_contained
from concierge.services.chat.types import AnchorKind

EXPLICIT_CONFIDENCE = 1.0
ASSISTANT_CONFIDENCE = 0.8
RETRIEVAL_CONFIDENCE = 0.7
DECAY_FACTOR = 0.8
DROP_FLOOR = 0.3
USABLE_CONFIDENCE = 0.6
DOMINANT_SHARE = 0.5
DOMINANT_WINDOW = 6
MAX_STORE_CHOICES = 4

SOMETHING_ELSE = ClarifierOption(label="Something else…", value="something else")

PRONOUN_PATTERNS = (
    re.compile(r"\b(?:they|them|their|theirs)\b", re.IGNORECASE),
    re.compile(r"\b(?:it|its)\b", re.IGNORECASE),
    re.compile(r"\b(?:this|that|these|those)\b", re.IGNORECASE),
    re.compile(r"\b(?:the one|this one|that one)\b", re.IGNORECASE),
)

DEFAULT_CATEGORY_TERMS: Sequence[str] = (
    "snowboard",
    "board",
    "binding",
    "boot",
    "goggle",
    "helmet",
    "jacket",
    "coat",
    "pant",
    "bib",
    "glove",
    "mitten",
    "shoe",
    "sneaker",
    "backpack",
    "bag",
    "watch",
    "headphone",
    "laptop",
    "phone",
    "dress",
    "shirt",
    "sweater",
    "ski",
)


@dataclass(frozen=True)
class ReferentResolution:
    resolved: bool
    referent: Optional[str]
    needs_clarification: bool


def _singular(word: str) -> str:
    lowered = word.lower()
    if lowered.endswith("es") and lowered[:-2].endswith(("sh", "ch", "x")):
        return lowered[:-2]
    if lowered.endswith("s") and not lowered.endswith("ss"):
        return lowered[:-1]
    return lowered


def category_vocabulary(store: Optional[StoreContext] = None) -> List[str]:
    terms: List[str] = []
    if store is not None:
        if store.primary_category:
            terms.append(store.primary_category)
        terms.extend(category.name for category in store.categories if category.name)
    terms.extend(DEFAULT_CATEGORY_TERMS)
    seen = set()
    ordered: List[str] = []
    for term in terms:
        key = _singular(term.strip())
        if key and key != "product" and key not in seen:
            seen.add(key)
            ordered.append(key)
    # Longer terms first so "snowboard" wins over "board".
    return sorted(ordered, key=lambda term: (-len(term), term))


def has_unresolved_pronoun(text: str) -> bool:
    return any(pattern.search(text or "") for pattern in PRONOUN_PATTERNS)


def extract_category(text: str, vocabulary: Iterable[str]) -> Optional[str]:
    lowered = str(text or "").lower()
    for term in vocabulary:
        pattern = rf"\b{re.escape(term)}(?:s|es)?\b"
        if re.search(pattern, lowered):
            return term
    return None


def extract_brand(text: str, known_brands: Iterable[str]) -> Optional[str]:
    known = detect_brand(text, known_brands)
    if known:
        return known
    mention = re.search(r"@(\w+)", str(text or ""))
    if mention:
        return mention.group(1)
    return None


def explicit_anchor(text: str, store: Optional[StoreContext]) -> Optional[TopicAnchor]:
    """An anchor the message itself establishes, if any."""
    category = extract_category(text, category_vocabulary(store))
    if category:
        return TopicAnchor(kind=AnchorKind.CATEGORY, text=category, confidence=EXPLICIT_CONFIDENCE)
    brand = extract_brand(text, store.top_brands if store else [])
    if brand:
        return TopicAnchor(kind=AnchorKind.BRAND, text=brand, confidence=EXPLICIT_CONFIDENCE)
    return None


def dominant_category(products: Sequence[ProductCandidate]) -> Optional[str]:
    types = [product.product_type.strip() for product in products[:DOMINANT_WINDOW] if product.product_type]
    if not types:
        return None
    value, count = Counter(types).most_common(1)[0]
    window = min(len(products), DOMINANT_WINDOW)
    if count / max(window, 1) < DOMINANT_SHARE:
        return None
    return _singular(value)


def update_topic_anchor(
    current: Optional[TopicAnchor],
    *,
    user_text: str,
    previous_assistant_text: str = "",
    retrieval_category: Optional[str] = None,
    store: Optional[StoreContext] = None,
) -> Optional[TopicAnchor]:
    explicit = explicit_anchor(user_text, store)
    if explicit is not None:
        return explicit

    assistant_category = extract_category(previous_assistant_text, category_vocabulary(store))
    if assistant_category:
        return TopicAnchor(kind=AnchorKind.CATEGORY, text=assistant_category, confidence=ASSISTANT_CONFIDENCE)

    if retrieval_category:
        return TopicAnchor(kind=AnchorKind.CATEGORY, text=retrieval_category, confidence=RETRIEVAL_CONFIDENCE)

    if current is not None and current.confidence > DROP_FLOOR:
        return TopicAnchor(kind=current.kind, text=current.text, confidence=round(current.confidence * DECAY_FACTOR, 4))

    return None


def resolve_referent(
    text: str,
    anchor: Optional[TopicAnchor],
    store: Optional[StoreContext] = None,
) -> ReferentResolution:
    if not has_unresolved_pronoun(text) or is_self_contained(text):
        return ReferentResolution(resolved=True, referent=None, needs_clarification=False)

    # "is this snowboard any good" carries its own referent.
    explicit = explicit_anchor(text, store)
    if explicit is not None:
        return ReferentResolution(resolved=True, referent=explicit.text, needs_clarification=False)

    if anchor is not None and anchor.confidence >= USABLE_CONFIDENCE:
        return ReferentResolution(resolved=True, referent=anchor.text, needs_clarification=False)

    return ReferentResolution(resolved=False, referent=None, needs_clarification=True)


def _title(value: str) -> str:
    return value[:1].upper() + value[1:]


def build_clarification_options(store: Optional[StoreContext], max_options: int = MAX_STORE_CHOICES) -> List[ClarifierOption]:
    """2-4 store-derived choices plus a "something else" escape. Deterministic."""
    options: List[ClarifierOption] = []
    seen = set()

    def add(name: str) -> None:
        key = name.strip().lower()
        if not key or key in seen or key == "products" or len(options) >= max_options:
            return
        seen.add(key)
        options.append(ClarifierOption(label=_title(name.strip()), value=f"show me {key}"))

    if store is not None:
        if store.primary_category:
            add(store.primary_category)
        for category in store.categories:
            add(category.name)
        for brand in store.top_brands:
            add(brand)

    if len(options) < 2:
        options = [
            ClarifierOption(label="Our products", value="show me your products"),
            ClarifierOption(label="Our store", value="tell me about your store"),
        ]

    options.append(SOMETHING_ELSE)
    return options
