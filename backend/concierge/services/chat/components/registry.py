from __future__ import annotations

from typing import Dict, List, Type

from concierge.schemas.turn import Segment
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.builders import (
    AskBuilder,
    ComparisonBuilder,
    EvidenceBuilder,
    NarrativeBuilder,
    NoteBuilder,
    OptionsBuilder,
    ProductsBuilder,
)
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import SegmentType


class SegmentRegistry:
    _registry: Dict[SegmentType, Type[BaseSegmentBuilder]] = {
        SegmentType.NARRATIVE: NarrativeBuilder,
        SegmentType.PRODUCTS: ProductsBuilder,
        SegmentType.ASK: AskBuilder,
        SegmentType.OPTIONS: OptionsBuilder,
        SegmentType.EVIDENCE: EvidenceBuilder,
        SegmentType.COMPARISON: ComparisonBuilder,
        SegmentType.NOTE: NoteBuilder,
    }

    @classmethod
    def builder_for(cls, segment_type: SegmentType) -> BaseSegmentBuilder:
        builder_cls = cls._registry.get(segment_type)
        if builder_cls is None:
            raise KeyError(f"missing builder for segment_type={segment_type.value}")
        return builder_cls()

    @classmethod
    async def build_segments(
        cls,
        *,
        segment_types: List[SegmentType],
        context: BuilderContext,
    ) -> List[Segment]:
        built: List[Segment] = []
        for segment_type in segment_types:
            builder = cls.builder_for(segment_type)
            built.append(await builder.build(context))
        return built
