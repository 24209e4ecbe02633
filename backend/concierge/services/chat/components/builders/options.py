from __future__ import annotations

from typing import Any, Dict, List

from concierge.schemas.turn import Segment
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import ConversationMode, SegmentType


class OptionsBuilder(BaseSegmentBuilder):
    """Quick replies: clarifier answers, dead-end alternatives or undo choices."""

    segment_type = SegmentType.OPTIONS

    async def build(self, context: BuilderContext) -> Segment:
        choices: List[Dict[str, Any]]
        if context.mode == ConversationMode.CLARIFY:
            kind = "clarifier"
            facet = context.clarifier_facet or "referent"
            choices = [
                {"id": f"{facet}_{index}", "label": option.label, "value": option.value}
                for index, option in enumerate(context.clarifier_options)
            ]
        elif context.mode == ConversationMode.DEAD_END:
            kind = "alternatives"
            choices = [reply.model_dump() for reply in context.alternatives]
        else:
            kind = "undo"
            choices = [reply.model_dump() for reply in context.undo_options]
        return Segment(
            type=self.segment_type,
            data={"kind": kind, "facet": context.clarifier_facet, "choices": choices},
        )
