from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

import httpx

from concierge.core.config import settings
from concierge.core.logging import get_logger
from concierge.schemas.session import FactSheet
from concierge.services.contracts import FactSheetService
from concierge.utils.debug_log import debug_log

logger = get_logger(__name__)


class HttpFactSheetService:
    """Product fact sheets from the tools service (``POST /product-facts``)."""

    FACTS_PATH = "/product-facts"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.TOOLS_BASE_URL or "").rstrip("/")
        self.timeout_seconds = float(timeout_seconds or settings.ENRICHMENT_TIMEOUT_SECONDS)
        self._transport = transport

    async def fetch(self, shop_id: str, product_ids: Sequence[str]) -> List[FactSheet]:
        if not self.base_url or not product_ids:
            return []
        timeout = httpx.Timeout(self.timeout_seconds, connect=self.timeout_seconds)
        async with httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport) as client:
            resp = await client.post(self.FACTS_PATH, json={"shop_id": shop_id, "product_ids": list(product_ids)})
            resp.raise_for_status()
            data = resp.json()
        items = data.get("facts", []) if isinstance(data, dict) else []
        return [FactSheet.model_validate(item) for item in items if isinstance(item, dict) and item.get("id")]


async def fetch_with_deadline(
    service: Optional[FactSheetService],
    shop_id: str,
    product_ids: Sequence[str],
    *,
    timeout_seconds: float,
) -> List[FactSheet]:
    """Best-effort enrichment. Timeouts and failures yield an empty list."""
    if service is None or not product_ids:
        return []
    try:
        return await asyncio.wait_for(service.fetch(shop_id, product_ids), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("fact sheet fetch timed out after %.2fs for %s", timeout_seconds, list(product_ids))
        debug_log({"event": "enrichment_timeout", "shop_id": shop_id, "product_ids": list(product_ids)})
    except Exception as e:
        logger.warning(f"fact sheet fetch failed: {e}")
        debug_log({"event": "enrichment_failed", "shop_id": shop_id, "error": str(e)})
    return []
