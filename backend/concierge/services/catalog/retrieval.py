from __future__ import annotations

from typing import Dict, List, Optional

import httpx

from concierge.core.config import settings
from concierge.core.exceptions import RetrievalError
from concierge.core.logging import get_logger
from concierge.services.catalog.models import RetrievalResult

logger = get_logger(__name__)


class HttpRetrievalService:
    """Hybrid (lexical + vector) catalog search over HTTP.

    Expects the search backend to answer ``POST /search`` with
    ``{"products": [...], "facets": {"facet": [values]}}``.
    """

    SEARCH_PATH = "/search"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.RETRIEVAL_BASE_URL).rstrip("/")
        self.timeout_seconds = float(timeout_seconds or settings.RETRIEVAL_TIMEOUT_SECONDS)
        self._transport = transport

    async def search(
        self,
        *,
        shop_id: str,
        lexical_query: str,
        embedding: List[float],
        limit: int,
        active_filters: Dict[str, str],
    ) -> RetrievalResult:
        payload = {
            "shop_id": shop_id,
            "query": lexical_query,
            "embedding": embedding,
            "limit": limit,
            "filters": dict(active_filters),
        }
        timeout = httpx.Timeout(self.timeout_seconds, connect=self.timeout_seconds)
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport) as client:
                resp = await client.post(self.SEARCH_PATH, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Retrieval returned {e.response.status_code} for shop={shop_id}")
            raise RetrievalError("retrieval returned an error", status_code=e.response.status_code) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Retrieval request failed for shop={shop_id}: {e}")
            raise RetrievalError("retrieval request failed") from e

        result = RetrievalResult.from_payload(data if isinstance(data, dict) else {})
        logger.info("retrieval shop=%s results=%d filters=%s", shop_id, result.count, active_filters)
        return result
