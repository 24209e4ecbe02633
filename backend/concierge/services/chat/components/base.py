from __future__ import annotations

from abc import ABC, abstractmethod

from concierge.schemas.turn import Segment
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import SegmentType


class BaseSegmentBuilder(ABC):
    segment_type: SegmentType

    @abstractmethod
    async def build(self, context: BuilderContext) -> Segment:
        raise NotImplementedError
