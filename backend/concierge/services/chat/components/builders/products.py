from __future__ import annotations

from concierge.schemas.turn import Segment
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import ConversationMode, SegmentType

MAX_CARDS = 3
MAX_PREVIEW_CARDS = 2


class ProductsBuilder(BaseSegmentBuilder):
    segment_type = SegmentType.PRODUCTS

    async def build(self, context: BuilderContext) -> Segment:
        preview = context.mode == ConversationMode.CLARIFY
        limit = MAX_PREVIEW_CARDS if preview else MAX_CARDS
        return Segment(
            type=self.segment_type,
            data={
                "role": "preview" if preview else "recommendation",
                "items": [product.to_card() for product in context.products[:limit]],
            },
        )
