"""Last check on an assembled turn before it leaves the engine."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from concierge.schemas.turn import ChatTurn, Segment
from concierge.services.chat.types import ConversationMode, SegmentType, TurnTopic

CLARIFIER_MIN_OPTIONS = 2
CLARIFIER_MAX_OPTIONS = 6
CLARIFY_MAX_PREVIEWS = 2
RECOMMEND_MAX_PRODUCTS = 3
COMPARE_MIN_PRODUCTS = 2


@dataclass(frozen=True)
class CoherenceCorrection:
    corrected_mode: ConversationMode
    reason: str


def _options_of_kind(turn: ChatTurn, kind: str) -> List[Segment]:
    return [segment for segment in turn.segments_of(SegmentType.OPTIONS) if segment.data.get("kind") == kind]


def _choice_count(segments: List[Segment]) -> int:
    return sum(len(segment.data.get("choices") or []) for segment in segments)


class CoherenceGate:
    """Validates that a turn's segments agree with its declared mode.

    Returns None for a coherent turn, otherwise the mode the turn should be
    rebuilt under and why.
    """

    @staticmethod
    def check(turn: ChatTurn) -> Optional[CoherenceCorrection]:
        mode = turn.metadata.mode
        topic = turn.metadata.topic
        product_count = len(turn.product_ids)
        clarifier_segments = _options_of_kind(turn, "clarifier")
        has_clarifier = bool(turn.segments_of(SegmentType.ASK)) or bool(clarifier_segments)
        comparison = turn.first(SegmentType.COMPARISON)

        if topic != TurnTopic.COMMERCE and (product_count or has_clarifier or comparison is not None):
            return CoherenceCorrection(ConversationMode.CHAT, "non-commerce topic cannot carry products or clarifiers")

        if mode == ConversationMode.CLARIFY:
            options = _choice_count(clarifier_segments)
            if not has_clarifier or options < CLARIFIER_MIN_OPTIONS or options > CLARIFIER_MAX_OPTIONS:
                return CoherenceCorrection(ConversationMode.RECOMMEND, "clarify requires 2-6 clarifier options")
            if product_count > CLARIFY_MAX_PREVIEWS:
                return CoherenceCorrection(ConversationMode.RECOMMEND, "clarify shows at most 2 preview products")

        if mode == ConversationMode.RECOMMEND:
            if has_clarifier:
                return CoherenceCorrection(ConversationMode.CLARIFY, "recommend cannot carry a clarifier")
            if product_count == 0:
                return CoherenceCorrection(ConversationMode.DEAD_END, "recommend requires at least 1 product")
            if product_count > RECOMMEND_MAX_PRODUCTS:
                return CoherenceCorrection(ConversationMode.CLARIFY, "recommend shows at most 3 products")

        if mode == ConversationMode.COMPARE:
            compared = list((comparison.data.get("product_ids") if comparison else None) or [])
            if comparison is None or len(compared) < COMPARE_MIN_PRODUCTS:
                return CoherenceCorrection(ConversationMode.RECOMMEND, "compare requires a comparison of at least 2 products")

        if mode == ConversationMode.DEAD_END:
            if product_count:
                return CoherenceCorrection(ConversationMode.RECOMMEND, "dead end cannot show products")
            if not _options_of_kind(turn, "alternatives"):
                return CoherenceCorrection(ConversationMode.CHAT, "dead end requires at least 1 alternative")

        if mode == ConversationMode.CHAT and topic == TurnTopic.COMMERCE and product_count:
            return CoherenceCorrection(ConversationMode.RECOMMEND, "commerce chat should not show products directly")

        return None
