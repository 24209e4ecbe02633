from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.components.planner import TurnPlanner
from concierge.services.chat.components.registry import SegmentRegistry

__all__ = [
    "BuilderContext",
    "SegmentRegistry",
    "TurnPlanner",
]
