from typing import List, Optional

from openai import AsyncOpenAI

from concierge.core.config import settings
from concierge.core.exceptions import EmbeddingError
from concierge.core.logging import get_logger

logger = get_logger(__name__)


class OpenAIEmbeddingService:
    """Query embeddings for hybrid retrieval. Never consulted for routing."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.EMBEDDING_MODEL

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    async def embed(self, text: str) -> List[float]:
        text = text.replace("\n", " ")
        try:
            response = await self.client.embeddings.create(input=[text], model=self.model)
        except Exception as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingError(str(e)) from e
        return response.data[0].embedding
