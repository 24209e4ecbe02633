from __future__ import annotations

from concierge.services.catalog.models import RetrievalResult

TOP_WEIGHT = 0.5
COVERAGE_WEIGHT = 0.3
CONSISTENCY_WEIGHT = 0.2

COVERAGE_WINDOW = 6
COVERAGE_FLOOR = 0.35
SPREAD_WINDOW = 5
SPREAD_TIGHT = 0.3
CONSISTENT_BONUS = 1.0
INCONSISTENT_BONUS = 0.7


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value or 0.0)))


def calculate_groundability(retrieval: RetrievalResult) -> float:
    """Confidence (0-1) that the retrieval is good enough to act on."""
    products = retrieval.products
    if not products:
        return 0.0

    top_score = _clamp(products[0].relevance_score)

    good_matches = sum(
        1 for product in products[:COVERAGE_WINDOW] if _clamp(product.relevance_score) >= COVERAGE_FLOOR
    )
    coverage = good_matches / COVERAGE_WINDOW

    scores = [_clamp(product.relevance_score) for product in products[:SPREAD_WINDOW]]
    spread = (max(scores) - min(scores)) if len(scores) > 1 else 0.0
    consistency = CONSISTENT_BONUS if spread < SPREAD_TIGHT else INCONSISTENT_BONUS

    score = (top_score * TOP_WEIGHT) + (coverage * COVERAGE_WEIGHT) + (consistency * CONSISTENCY_WEIGHT)
    return round(_clamp(score), 4)
