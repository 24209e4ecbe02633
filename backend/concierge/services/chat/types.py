from __future__ import annotations

from enum import Enum


class TurnTopic(str, Enum):
    RAPPORT = "rapport"
    STORE_INFO = "store_info"
    POLICY_INFO = "policy_info"
    PRODUCT_INFO = "product_info"
    COMMERCE = "commerce"


class ConversationMode(str, Enum):
    CHAT = "chat"
    CLARIFY = "clarify"
    RECOMMEND = "recommend"
    COMPARE = "compare"
    DEAD_END = "dead_end"


class SegmentType(str, Enum):
    NARRATIVE = "narrative"
    PRODUCTS = "products"
    ASK = "ask"
    OPTIONS = "options"
    EVIDENCE = "evidence"
    COMPARISON = "comparison"
    NOTE = "note"


class AnchorKind(str, Enum):
    CATEGORY = "category"
    PRODUCT = "product"
    BRAND = "brand"
    GENERAL = "general"
