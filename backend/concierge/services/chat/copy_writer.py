"""Deterministic lead/detail copy for each turn.

Prose is always chosen from fixed templates. Nothing here decides the mode,
the facet or the product set; it only phrases what the router already chose.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from concierge.services.chat.types import ConversationMode, TurnTopic

_PLACEHOLDER_RE = re.compile(r"\{[a-z_]+\}")

DETAIL_PREFIXES = ("Here's the thinking:", "Worth noting:", "Let's focus in:")


@dataclass(frozen=True)
class CopyTemplate:
    id: str
    lead: str
    detail: str


@dataclass(frozen=True)
class CopyBlock:
    lead: str
    detail: str
    template_id: str


@dataclass
class CopySlots:
    count: int = 0
    category: Optional[str] = None
    facet: Optional[str] = None
    facet_label: Optional[str] = None
    price_range: Optional[str] = None
    brands: List[str] = field(default_factory=list)
    user_query: str = ""
    primary_category: Optional[str] = None
    store_type: Optional[str] = None
    needs_referent: bool = False


MODE_TEMPLATES: Dict[ConversationMode, List[CopyTemplate]] = {
    ConversationMode.CLARIFY: [
        CopyTemplate(
            id="clarify_many",
            lead="I found several {category} that could work for you.",
            detail="To find your best match, what {facet_label} matters most to you?",
        ),
        CopyTemplate(
            id="clarify_default",
            lead="I found a few options that could be right for you.",
            detail="Let me ask about your {facet_label} preference so I can narrow this down to the best 2-3 matches.",
        ),
        CopyTemplate(
            id="clarify_forced",
            lead="Let me help you find exactly what you're looking for.",
            detail="A quick question about {facet_label} will help me curate the right picks.",
        ),
        CopyTemplate(
            id="clarify_referent",
            lead="Happy to help. Which one do you mean?",
            detail="Pick one of these so I know what we're talking about.",
        ),
    ],
    ConversationMode.RECOMMEND: [
        CopyTemplate(
            id="recommend_default",
            lead="I've picked {category_count} that match your needs.",
            detail="Tap a card for full specs or ask me to compare them side by side.",
        ),
        CopyTemplate(
            id="recommend_price",
            lead="These are the {category_count} I'd recommend.",
            detail="Everything here fits your {price_range} budget.",
        ),
        CopyTemplate(
            id="recommend_brand",
            lead="Here are the {category_count} that fit best.",
            detail="Selected {category} from {brands}.",
        ),
    ],
    ConversationMode.COMPARE: [
        CopyTemplate(
            id="compare_default",
            lead="Here's how these {category} compare.",
            detail="I've lined up the key differences to help you decide.",
        ),
    ],
    ConversationMode.CHAT: [
        CopyTemplate(
            id="chat_default",
            lead="Let me help you with that.",
            detail="Tell me more about what you're looking for and I'll guide you to the right {category}.",
        ),
    ],
    ConversationMode.DEAD_END: [
        CopyTemplate(
            id="dead_end_default",
            lead="I couldn't find an exact match for that.",
            detail="Try one of these options or browse our {primary_category} collection.",
        ),
    ],
}

TOPIC_TEMPLATES: Dict[str, CopyTemplate] = {
    "rapport": CopyTemplate(
        id="rapport",
        lead="Hi there! Great to have you here.",
        detail="Tell me what you're shopping for and I'll point you to the right {category}.",
    ),
    "store_info": CopyTemplate(
        id="store_info",
        lead="We're a {store_type} specialising in {primary_category}.",
        detail="Ask me about any product and I'll find the best fit.",
    ),
    "policy_shipping": CopyTemplate(
        id="policy_shipping",
        lead="Here's how shipping works.",
        detail="Most orders ship within 1-2 business days.",
    ),
    "policy_returns": CopyTemplate(
        id="policy_returns",
        lead="Our return policy is straightforward.",
        detail="Unused items can be returned within 30 days.",
    ),
    "policy_info": CopyTemplate(
        id="policy_info",
        lead="Happy to help with store policies.",
        detail="Let me know whether it's about shipping, returns or warranty.",
    ),
    "product_info": CopyTemplate(
        id="product_info",
        lead="Good question.",
        detail="Tell me which {category} you have in mind and I'll walk you through it.",
    ),
}


def pluralize(noun: str) -> str:
    base = noun.strip() or "item"
    if base.lower().endswith("s"):
        return base
    if re.search(r"(ch|sh|x|z)$", base, re.IGNORECASE):
        return f"{base}es"
    if base.endswith("y") and not re.search(r"[aeiou]y$", base, re.IGNORECASE):
        return f"{base[:-1]}ies"
    return f"{base}s"


def counted_noun(noun: Optional[str], count: int) -> str:
    base = (noun or "item").strip() or "item"
    if count <= 0:
        return pluralize(base)
    if count == 1:
        return f"1 {base}"
    return f"{count} {pluralize(base)}"


def stable_index(seed: str, size: int) -> int:
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % max(size, 1)


def fill_template(text: str, values: Dict[str, str]) -> str:
    filled = text
    for key, value in values.items():
        if value:
            filled = filled.replace("{" + key + "}", value)
    filled = _PLACEHOLDER_RE.sub("", filled)
    return re.sub(r"\s{2,}", " ", filled).replace(" .", ".").strip()


class TemplateCopyWriter:
    """Default copy collaborator: picks a template by (mode, topic, slots)."""

    def __init__(self, *, detail_prefixes: bool = True):
        self.detail_prefixes = detail_prefixes

    @staticmethod
    def _template_for(mode: ConversationMode, topic: TurnTopic, slots: CopySlots) -> CopyTemplate:
        query = slots.user_query.lower()
        if topic == TurnTopic.RAPPORT:
            return TOPIC_TEMPLATES["rapport"]
        if topic == TurnTopic.STORE_INFO:
            return TOPIC_TEMPLATES["store_info"]
        if topic == TurnTopic.POLICY_INFO:
            if "ship" in query or "deliver" in query:
                return TOPIC_TEMPLATES["policy_shipping"]
            if "return" in query or "refund" in query:
                return TOPIC_TEMPLATES["policy_returns"]
            return TOPIC_TEMPLATES["policy_info"]
        if topic == TurnTopic.PRODUCT_INFO:
            return TOPIC_TEMPLATES["product_info"]

        templates = {template.id: template for template in MODE_TEMPLATES.get(mode, [])}
        if mode == ConversationMode.CLARIFY:
            if slots.needs_referent:
                return templates["clarify_referent"]
            if not slots.facet:
                return templates["clarify_forced"]
            if slots.count > 10:
                return templates["clarify_many"]
            return templates["clarify_default"]
        if mode == ConversationMode.RECOMMEND:
            if slots.price_range:
                return templates["recommend_price"]
            if slots.brands:
                return templates["recommend_brand"]
            return templates["recommend_default"]
        if templates:
            return next(iter(templates.values()))
        return MODE_TEMPLATES[ConversationMode.CHAT][0]

    @staticmethod
    def _values(slots: CopySlots) -> Dict[str, str]:
        category = slots.category or slots.primary_category or "item"
        values = {
            key: str(value)
            for key, value in asdict(slots).items()
            if isinstance(value, (str, int)) and not isinstance(value, bool) and value != ""
        }
        values.update(
            {
                "category": pluralize(category),
                "category_count": counted_noun(category, slots.count),
                "facet_label": slots.facet_label or (slots.facet or "").replace("_", " "),
                "brands": ", ".join(slots.brands[:3]),
                "primary_category": pluralize(slots.primary_category) if slots.primary_category else "",
                "store_type": slots.store_type or "specialty store",
            }
        )
        return values

    def write(self, mode: ConversationMode, topic: TurnTopic, slots: CopySlots) -> CopyBlock:
        template = self._template_for(mode, topic, slots)
        values = self._values(slots)
        lead = fill_template(template.lead, values)
        detail = fill_template(template.detail, values)
        if detail and self.detail_prefixes and mode in {ConversationMode.CLARIFY, ConversationMode.RECOMMEND}:
            prefix = DETAIL_PREFIXES[stable_index(f"{template.id}:{detail}", len(DETAIL_PREFIXES))]
            if not detail.lower().startswith(prefix.lower()):
                detail = f"{prefix} {detail}"
        return CopyBlock(lead=lead, detail=detail, template_id=template.id)
