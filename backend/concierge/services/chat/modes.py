from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

from concierge.schemas.session import ClarifierOption
from concierge.schemas.turn import QuickReply
from concierge.services.chat.types import ConversationMode


@dataclass(frozen=True)
class ChatMode:
    kind: ClassVar[ConversationMode] = ConversationMode.CHAT
    reason: str = "conversational"


@dataclass(frozen=True)
class ClarifyMode:
    kind: ClassVar[ConversationMode] = ConversationMode.CLARIFY
    facet: Optional[str]
    options: Tuple[ClarifierOption, ...]
    preview_ids: Tuple[str, ...] = ()
    forced: bool = False


@dataclass(frozen=True)
class RecommendMode:
    kind: ClassVar[ConversationMode] = ConversationMode.RECOMMEND
    product_ids: Tuple[str, ...]


@dataclass(frozen=True)
class CompareMode:
    kind: ClassVar[ConversationMode] = ConversationMode.COMPARE
    product_ids: Tuple[str, ...]


@dataclass(frozen=True)
class DeadEndMode:
    kind: ClassVar[ConversationMode] = ConversationMode.DEAD_END
    alternatives: Tuple[QuickReply, ...]


Mode = Union[ChatMode, ClarifyMode, RecommendMode, CompareMode, DeadEndMode]
