"""Hard topic classification.

Every message maps to exactly one topic. Rules are evaluated top to bottom and
the first match wins; the order is the precedence list, so a price mention or a
shopping verb outranks "what is / explain" phrasing.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Pattern, Sequence, Tuple

from concierge.services.chat.types import TurnTopic


RAPPORT_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"^(?:hi|hello|hey)(?:[!.,\s]|$)"),
    re.compile(r"^good\s+(?:morning|afternoon|evening)"),
    re.compile(r"^thanks?(?:[!.\s]|$)"),
    re.compile(r"thank you"),
    re.compile(r"how are you"),
    re.compile(r"hows? it going|how's it going"),
    re.compile(r"nice to meet you"),
)

POLICY_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\b(?:shipping|ship|delivery)\s+(?:policy|cost|costs|time|times|info)"),
    re.compile(r"\b(?:return|returns|refund|exchange)\s+(?:policy|process|info)"),
    re.compile(r"\bwarranty\b"),
    re.compile(r"\b(?:how|when) do (?:you|i) (?:ship|return)"),
    re.compile(r"free shipping"),
)

STORE_IDENTITY_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"what (?:do|does) (?:you|this store|the store) sell"),
    re.compile(r"what kind of (?:store|shop)"),
    re.compile(r"tell me about (?:this|the|your) store"),
    re.compile(r"what products do you"),
    re.compile(r"what categories"),
    re.compile(r"who are you"),
    re.compile(r"what are you as a store"),
)

# Shared with the compare gate so a message that reads as a comparison is
# also classified as shopping.
COMPARISON_PATTERN: Pattern[str] = re.compile(
    r"\b(?:compare|comparison|versus|vs\.?|differences?)\b", re.IGNORECASE
)

PRICE_PATTERN: Pattern[str] = re.compile(
    r"\$\s?\d+|\b(?:under|below|over|above|around|for|less than|more than)\s+\$?\d+|\d+\s*(?:usd|dollars|bucks)\b"
)

SHOPPING_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\bbuy\b"),
    re.compile(r"\brecommend"),
    re.compile(r"\bbest\b"),
    re.compile(r"\btop\b"),
    re.compile(r"looking for"),
    re.compile(r"\bi need\b"),
    re.compile(r"\bi want\b"),
    re.compile(r"should.*\bget\b"),
    re.compile(r"can.*\bget\b"),
    re.compile(r"\b(?:size|sizes|fit|fits)\b"),
    re.compile(r"show.*(?:everything|all)"),
    re.compile(r"\b(?:browse|see|view)\s+(?:all|everything|catalog)"),
    COMPARISON_PATTERN,
)

INFO_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"\bwhat\s+(?:is|are)\b"),
    re.compile(r"\bwhat'?s\b"),
    re.compile(r"\bdefine\b"),
    re.compile(r"\bmeaning\b"),
    re.compile(r"\bhow\s+does\b"),
    re.compile(r"\btypes?\s+of\b"),
    re.compile(r"\btell\s+me\s+(?:what|about|how)"),
    re.compile(r"\bused\s+for\b"),
    re.compile(r"\bpurpose\s+of\b"),
    re.compile(r"\bexplain\b"),
    re.compile(r"\b(?:benefits?|advantages?|disadvantages?)\s+of\b"),
    re.compile(r"\bpros?\s+(?:and|&)\s+cons?\b"),
    re.compile(r"\b(?:history|origin)\s+of\b"),
    re.compile(r"\binvented\b"),
    re.compile(r"\bchoose\s+the\s+(?:right|correct)\b"),
    re.compile(r"\bbeginner'?s?\s+guide"),
    re.compile(r"\blearn(?:ing)?\s+(?:about|to)\b"),
    re.compile(r"\bmaintenance\b"),
    re.compile(r"\bcare\s+(?:for|of)\b"),
    re.compile(r"\bsafety\s+(?:tips?|guide|info)"),
    re.compile(r"\bbasics?\s+of\b"),
    re.compile(r"\bintroduction\s+to\b"),
    re.compile(r"\bget\s+started\b"),
)


def _any(patterns: Sequence[Pattern[str]]) -> Callable[[str], bool]:
    def predicate(text: str) -> bool:
        return any(pattern.search(text) for pattern in patterns)

    return predicate


@dataclass(frozen=True)
class TopicRule:
    name: str
    topic: TurnTopic
    matches: Callable[[str], bool]


@dataclass(frozen=True)
class TopicDecision:
    topic: TurnTopic
    rule: str


TOPIC_RULES: List[TopicRule] = [
    TopicRule("rapport", TurnTopic.RAPPORT, _any(RAPPORT_PATTERNS)),
    TopicRule("policy", TurnTopic.POLICY_INFO, _any(POLICY_PATTERNS)),
    TopicRule("store_identity", TurnTopic.STORE_INFO, _any(STORE_IDENTITY_PATTERNS)),
    TopicRule("price_mention", TurnTopic.COMMERCE, lambda text: bool(PRICE_PATTERN.search(text))),
    TopicRule("shopping_verb", TurnTopic.COMMERCE, _any(SHOPPING_PATTERNS)),
    TopicRule("informational", TurnTopic.PRODUCT_INFO, _any(INFO_PATTERNS)),
]

DEFAULT_RULE = "default_commerce"


def normalize(text: str) -> str:
    return " ".join(str(text or "").strip().lower().split())


def is_rapport(text: str) -> bool:
    return TOPIC_RULES[0].matches(normalize(text))


SELF_CONTAINED_TOPICS = frozenset({TurnTopic.RAPPORT, TurnTopic.POLICY_INFO, TurnTopic.STORE_INFO})


def is_self_contained(text: str) -> bool:
    """True for greetings, policy and store questions.

    Their pronouns ("this store", "is that covered") point at the shop or the
    conversation rather than at a product, so they never need a referent.
    """
    return classify(text).topic in SELF_CONTAINED_TOPICS


def has_comparison_intent(text: str) -> bool:
    return bool(COMPARISON_PATTERN.search(str(text or "")))


def classify(text: str) -> TopicDecision:
    normalized = normalize(text)
    for rule in TOPIC_RULES:
        if rule.matches(normalized):
            return TopicDecision(topic=rule.topic, rule=rule.name)
    return TopicDecision(topic=TurnTopic.COMMERCE, rule=DEFAULT_RULE)


def classify_topic(text: str) -> TurnTopic:
    return classify(text).topic
