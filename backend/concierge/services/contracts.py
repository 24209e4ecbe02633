from __future__ import annotations

from typing import Dict, List, Protocol, Sequence, Tuple

from concierge.schemas.session import FactSheet, SessionPatch, SessionState
from concierge.services.catalog.models import RetrievalResult
from concierge.services.chat.copy_writer import CopyBlock, CopySlots
from concierge.services.chat.types import ConversationMode, TurnTopic


class RetrievalService(Protocol):
    async def search(
        self,
        *,
        shop_id: str,
        lexical_query: str,
        embedding: List[float],
        limit: int,
        active_filters: Dict[str, str],
    ) -> RetrievalResult:
        ...


class EmbeddingService(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


class SessionStore(Protocol):
    async def load(self, shop_id: str, session_key: str) -> Tuple[str, SessionState]:
        ...

    async def save(self, session_id: str, patch: SessionPatch) -> SessionState:
        ...


class CopyWriter(Protocol):
    def write(self, mode: ConversationMode, topic: TurnTopic, slots: CopySlots) -> CopyBlock:
        ...


class FactSheetService(Protocol):
    async def fetch(self, shop_id: str, product_ids: Sequence[str]) -> List[FactSheet]:
        ...
