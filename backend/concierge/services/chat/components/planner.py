from __future__ import annotations

from typing import List

from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import ConversationMode, SegmentType


class TurnPlanner:
    """Maps the routed mode to the segment types the turn will carry."""

    @staticmethod
    def plan(context: BuilderContext) -> List[SegmentType]:
        mode = context.mode
        segments: List[SegmentType] = [SegmentType.NARRATIVE]

        if mode == ConversationMode.CLARIFY:
            if context.products:
                segments.append(SegmentType.PRODUCTS)
            segments.extend([SegmentType.ASK, SegmentType.OPTIONS])
        elif mode == ConversationMode.RECOMMEND:
            segments.extend([SegmentType.PRODUCTS, SegmentType.EVIDENCE])
            if context.undo_options:
                segments.append(SegmentType.OPTIONS)
        elif mode == ConversationMode.COMPARE:
            segments.extend([SegmentType.PRODUCTS, SegmentType.COMPARISON, SegmentType.EVIDENCE])
        elif mode == ConversationMode.DEAD_END:
            segments.append(SegmentType.OPTIONS)

        if context.notes:
            segments.append(SegmentType.NOTE)
        return segments
