from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from concierge.schemas.session import ClarifierOption, FactSheet
from concierge.schemas.turn import QuickReply
from concierge.services.catalog.models import ProductCandidate
from concierge.services.chat.copy_writer import CopyBlock
from concierge.services.chat.types import ConversationMode, TurnTopic


@dataclass
class BuilderContext:
    mode: ConversationMode
    topic: TurnTopic
    copy: CopyBlock
    products: List[ProductCandidate] = field(default_factory=list)
    clarifier_facet: Optional[str] = None
    clarifier_question: Optional[str] = None
    clarifier_options: List[ClarifierOption] = field(default_factory=list)
    alternatives: List[QuickReply] = field(default_factory=list)
    undo_options: List[QuickReply] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    fact_sheets: Dict[str, FactSheet] = field(default_factory=dict)
