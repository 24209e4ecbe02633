from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set


@dataclass
class ProductCandidate:
    id: str
    title: str = ""
    price: Optional[float] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    relevance_score: float = 0.0
    currency: Optional[str] = None
    image_url: Optional[str] = None
    handle: Optional[str] = None

    def to_card(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "price": self.price,
            "currency": self.currency,
            "vendor": self.vendor,
            "product_type": self.product_type,
            "image_url": self.image_url,
            "handle": self.handle,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ProductCandidate":
        raw_price = payload.get("price")
        raw_score = payload.get("relevance_score", payload.get("combined_score"))
        return cls(
            id=str(payload.get("id") or ""),
            title=str(payload.get("title") or ""),
            price=(float(raw_price) if raw_price is not None else None),
            vendor=(str(payload.get("vendor")) if payload.get("vendor") else None),
            product_type=(str(payload.get("product_type")) if payload.get("product_type") else None),
            tags=[str(tag) for tag in (payload.get("tags") or [])],
            relevance_score=float(raw_score or 0.0),
            currency=(str(payload.get("currency")) if payload.get("currency") else None),
            image_url=(str(payload.get("image_url")) if payload.get("image_url") else None),
            handle=(str(payload.get("handle")) if payload.get("handle") else None),
        )


@dataclass
class RetrievalResult:
    products: List[ProductCandidate] = field(default_factory=list)
    facets: Dict[str, Set[str]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.products)

    @classmethod
    def empty(cls) -> "RetrievalResult":
        return cls(products=[], facets={})

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RetrievalResult":
        products = [ProductCandidate.from_payload(item) for item in (payload.get("products") or [])]
        facets: Dict[str, Set[str]] = {}
        for name, values in dict(payload.get("facets") or {}).items():
            cleaned = {str(value).strip() for value in (values or []) if str(value).strip()}
            if cleaned:
                facets[str(name)] = cleaned
        return cls(products=products, facets=facets)
