from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from concierge.services.catalog.models import ProductCandidate, RetrievalResult


def make_product(
    product_id: str,
    *,
    score: float = 0.9,
    price: Optional[float] = 120.0,
    vendor: Optional[str] = "Burton",
    product_type: Optional[str] = "Snowboard",
    tags: Optional[List[str]] = None,
) -> ProductCandidate:
    return ProductCandidate(
        id=product_id,
        title=f"Board {product_id}",
        price=price,
        vendor=vendor,
        product_type=product_type,
        tags=list(tags or []),
        relevance_score=score,
        currency="USD",
    )


def make_retrieval(count: int, *, score: float = 0.9, facets: Optional[Dict[str, set]] = None) -> RetrievalResult:
    return RetrievalResult(
        products=[make_product(f"p{index}", score=score) for index in range(1, count + 1)],
        facets=dict(facets or {}),
    )


class RetrievalStub:
    """Returns queued results in order; repeats the last one once exhausted."""

    def __init__(self, results: Optional[List[RetrievalResult]] = None, *, error: Optional[Exception] = None):
        self.results = list(results or [RetrievalResult.empty()])
        self.error = error
        self.calls: List[dict] = []

    async def search(self, *, shop_id, lexical_query, embedding, limit, active_filters):
        self.calls.append(
            {
                "shop_id": shop_id,
                "lexical_query": lexical_query,
                "limit": limit,
                "active_filters": dict(active_filters),
            }
        )
        if self.error is not None:
            raise self.error
        index = min(len(self.calls) - 1, len(self.results) - 1)
        return self.results[index]


class EmbeddingStub:
    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return [0.1, 0.2, 0.3]


class FactSheetStub:
    def __init__(self, sheets=None, *, delay: float = 0.0, error: Optional[Exception] = None):
        self.sheets = list(sheets or [])
        self.delay = delay
        self.error = error
        self.calls: List[List[str]] = []

    async def fetch(self, shop_id, product_ids):
        self.calls.append(list(product_ids))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [sheet for sheet in self.sheets if sheet.id in product_ids]
