from __future__ import annotations

from typing import Dict, List, Optional

from concierge.schemas.session import FactSheet
from concierge.schemas.turn import Segment
from concierge.services.catalog.models import ProductCandidate
from concierge.services.chat.clarifier_config import humanize_facet_value
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import SegmentType

MAX_REASONS = 3


def fallback_reasons(product: ProductCandidate) -> List[str]:
    """Reasons derived from catalog fields alone, used when no fact sheet arrived."""
    reasons: List[str] = []
    if product.price is not None:
        currency = f" {product.currency}" if product.currency else ""
        reasons.append(f"Priced at ${product.price:,.2f}{currency}")
    if product.vendor:
        reasons.append(f"Made by {product.vendor}")
    if product.tags:
        reasons.append("Features: " + ", ".join(humanize_facet_value(tag) for tag in product.tags[:3]))
    if not reasons:
        reasons.append("A close match for what you described")
    return reasons[:MAX_REASONS]


def sheet_reasons(sheet: FactSheet) -> List[str]:
    reasons: List[str] = []
    if sheet.summary:
        reasons.append(sheet.summary)
    for item in sheet.evidence:
        text = str(item.get("text") or item.get("claim") or "").strip()
        if text:
            reasons.append(text)
    return reasons[:MAX_REASONS]


class EvidenceBuilder(BaseSegmentBuilder):
    segment_type = SegmentType.EVIDENCE

    async def build(self, context: BuilderContext) -> Segment:
        items: List[Dict[str, object]] = []
        for product in context.products:
            sheet: Optional[FactSheet] = context.fact_sheets.get(product.id)
            reasons = sheet_reasons(sheet) if sheet else []
            items.append(
                {
                    "product_id": product.id,
                    "source": "fact_sheet" if reasons else "catalog",
                    "reasons": reasons or fallback_reasons(product),
                }
            )
        return Segment(type=self.segment_type, data={"items": items})
