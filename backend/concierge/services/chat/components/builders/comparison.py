from __future__ import annotations

from typing import Any, Dict, List

from concierge.schemas.turn import Segment
from concierge.services.chat.components.base import BaseSegmentBuilder
from concierge.services.chat.components.context import BuilderContext
from concierge.services.chat.types import SegmentType

MAX_COMPARED = 3
MAX_SPEC_ROWS = 6
BASE_ROWS = (("price", "Price"), ("vendor", "Brand"), ("product_type", "Type"))


class ComparisonBuilder(BaseSegmentBuilder):
    segment_type = SegmentType.COMPARISON

    async def build(self, context: BuilderContext) -> Segment:
        products = context.products[:MAX_COMPARED]
        rows: List[Dict[str, Any]] = []
        for attribute, label in BASE_ROWS:
            rows.append({"attribute": label, "values": [getattr(product, attribute) for product in products]})

        spec_keys: List[str] = []
        for product in products:
            sheet = context.fact_sheets.get(product.id)
            for key in (sheet.specs if sheet else {}):
                if key not in spec_keys:
                    spec_keys.append(key)
        for key in spec_keys[:MAX_SPEC_ROWS]:
            values = []
            for product in products:
                sheet = context.fact_sheets.get(product.id)
                values.append(sheet.specs.get(key) if sheet else None)
            rows.append({"attribute": key, "values": values})

        return Segment(
            type=self.segment_type,
            data={
                "product_ids": [product.id for product in products],
                "columns": [product.title for product in products],
                "rows": rows,
            },
        )
