from __future__ import annotations

from concierge.schemas.turn import Segment
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import SegmentType


class NarrativeBuilder(BaseSegmentBuilder):
    segment_type = SegmentType.NARRATIVE

    async def build(self, context: BuilderContext) -> Segment:
        return Segment(
            type=self.segment_type,
            data={
                "lead": context.copy.lead,
                "detail": context.copy.detail,
                "template_id": context.copy.template_id,
            },
        )
