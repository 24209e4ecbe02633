from __future__ import annotations

from concierge.schemas.turn import Segment
from concierge.services.chat.clarifier_config import describe_facet
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import SegmentType


class AskBuilder(BaseSegmentBuilder):
    segment_type = SegmentType.ASK

    async def build(self, context: BuilderContext) -> Segment:
        question = context.clarifier_question
        if not question:
            if context.clarifier_facet:
                question = f"What {describe_facet(context.clarifier_facet)} are you after?"
            else:
                question = "Which one do you mean?"
        return Segment(type=self.segment_type, data={"facet": context.clarifier_facet, "question": question})
