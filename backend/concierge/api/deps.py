from functools import lru_cache

from concierge.db.session import AsyncSessionLocal
from concierge.services.catalog.retrieval import HttpRetrievalService
from concierge.services.chat.engine import TurnEngine
from concierge.services.chat.service import ChatTurnService
from concierge.services.embedding import OpenAIEmbeddingService
from concierge.services.enrichment.fact_sheets import HttpFactSheetService
from concierge.services.session_store import SqlSessionStore


@lru_cache
def get_chat_service() -> ChatTurnService:
    """
    Dependency providing the process-wide chat service.
    """
    engine = TurnEngine(
        retrieval=HttpRetrievalService(),
        embeddings=OpenAIEmbeddingService(),
        fact_sheets=HttpFactSheetService(),
    )
    return ChatTurnService(engine=engine, store=SqlSessionStore(AsyncSessionLocal))
