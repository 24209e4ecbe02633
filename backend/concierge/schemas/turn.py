from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from concierge.services.chat.types import ConversationMode, SegmentType, TurnTopic


class QuickReply(BaseModel):
    id: str
    label: str
    value: Optional[str] = None


class Segment(BaseModel):
    type: SegmentType
    data: Dict[str, Any] = {}


class CoherenceCorrectionInfo(BaseModel):
    from_mode: ConversationMode
    to_mode: ConversationMode
    reason: str


class TurnMetadata(BaseModel):
    mode: ConversationMode
    topic: TurnTopic
    topic_rule: Optional[str] = None
    decided_by: str
    groundability: float = 0.0
    facet: Optional[str] = None
    facet_entropy: float = 0.0
    product_count: int = 0
    retrieved_count: int = 0
    relaxation_steps: List[Dict[str, Any]] = []
    sanitized_filters: List[Dict[str, str]] = []
    chosen_product_id: Optional[str] = None
    clarification_reason: Optional[str] = None
    coherence_correction: Optional[CoherenceCorrectionInfo] = None
    template_id: Optional[str] = None


class ChatTurn(BaseModel):
    turn_id: str
    persona: str = "concierge"
    segments: List[Segment] = Field(default_factory=list)
    metadata: TurnMetadata

    def segments_of(self, segment_type: SegmentType) -> List[Segment]:
        return [segment for segment in self.segments if segment.type == segment_type]

    def first(self, segment_type: SegmentType) -> Optional[Segment]:
        found = self.segments_of(segment_type)
        return found[0] if found else None

    @property
    def product_ids(self) -> List[str]:
        products = self.first(SegmentType.PRODUCTS)
        if products is None:
            return []
        return [str(item.get("id")) for item in products.data.get("items", [])]

    @property
    def narrative_text(self) -> str:
        narrative = self.first(SegmentType.NARRATIVE)
        if narrative is None:
            return ""
        lead = str(narrative.data.get("lead") or "").strip()
        detail = str(narrative.data.get("detail") or "").strip()
        return " ".join(part for part in (lead, detail) if part)
