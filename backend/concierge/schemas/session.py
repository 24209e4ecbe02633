from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from concierge.services.chat.types import AnchorKind


class ClarifierOption(BaseModel):
    label: str
    value: str
    aliases: List[str] = []


class PendingClarifier(BaseModel):
    facet: str
    options: List[ClarifierOption] = []


class ManualClarifier(BaseModel):
    facet: str


class TopicAnchor(BaseModel):
    kind: AnchorKind
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


class NegotiationState(BaseModel):
    product_id: Optional[str] = None
    stage: Literal["anchor", "sweetener", "discount"] = "anchor"
    concession_index: int = 0


class FactSheet(BaseModel):
    id: str
    title: str = ""
    price: Optional[float] = None
    currency: Optional[str] = None
    summary: Optional[str] = None
    specs: Dict[str, Any] = {}
    evidence: List[Dict[str, Any]] = []


class FactSheetCache(BaseModel):
    product_ids: List[str] = []
    facts: List[FactSheet] = []
    fetched_at: datetime


class SessionState(BaseModel):
    """Durable cross-turn record. The engine reads it and returns a SessionPatch."""

    active_filters: Dict[str, str] = {}
    clarifier_history: Dict[str, int] = {}
    asked_slots: List[str] = []
    pending_clarifier: Optional[PendingClarifier] = None
    manual_clarifier: Optional[ManualClarifier] = None
    topic_anchor: Optional[TopicAnchor] = None
    turn_count: int = 0
    zero_result_streak: int = 0
    negotiation_state: Optional[NegotiationState] = None
    fact_sheet_cache: Optional[FactSheetCache] = None
    relaxed_filters: Dict[str, str] = {}
    dialogue_summary: Optional[str] = None


class SessionPatch(BaseModel):
    """Partial update. Only fields explicitly set are applied on merge."""

    active_filters: Optional[Dict[str, str]] = None
    clarifier_history: Optional[Dict[str, int]] = None
    asked_slots: Optional[List[str]] = None
    pending_clarifier: Optional[PendingClarifier] = None
    manual_clarifier: Optional[ManualClarifier] = None
    topic_anchor: Optional[TopicAnchor] = None
    turn_count: Optional[int] = None
    zero_result_streak: Optional[int] = None
    negotiation_state: Optional[NegotiationState] = None
    fact_sheet_cache: Optional[FactSheetCache] = None
    relaxed_filters: Optional[Dict[str, str]] = None
    dialogue_summary: Optional[str] = None
