from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from concierge.core.logging import get_logger
from concierge.schemas.turn import QuickReply
from concierge.services.catalog.models import RetrievalResult
from concierge.services.chat.clarifier_config import humanize_facet_value
from concierge.services.contracts import RetrievalService

logger = get_logger(__name__)

DEFAULT_MAX_STEPS = 4


@dataclass(frozen=True)
class RelaxationRule:
    facet: str
    label: Callable[[Optional[str]], str]
    description: Callable[[Optional[str]], str]


def _generic_rule(facet: str) -> RelaxationRule:
    readable = facet.replace("_", " ")
    return RelaxationRule(
        facet=facet,
        label=lambda value: f"Keep {humanize_facet_value(value)}" if value else f"Keep {readable}",
        description=lambda value: f"I dropped the {readable} filter to surface close matches.",
    )


# Price bounds are loosened first, then the most specific catalog filters.
RELAXATION_PRIORITY: List[RelaxationRule] = [
    RelaxationRule(
        facet="price_bucket",
        label=lambda value: f"Keep {value}" if value else "Reset budget",
        description=lambda value: (
            f"No stock at {value}. I widened the price range so you still see close matches."
            if value
            else "No stock in that price range. I widened the budget slightly to surface close matches."
        ),
    ),
    RelaxationRule(
        facet="tag",
        label=lambda value: f"Keep {humanize_facet_value(value)}" if value else "Keep feature",
        description=lambda value: "That exact feature is tight right now. I included items without it.",
    ),
    RelaxationRule(
        facet="product_type",
        label=lambda value: f"Only {humanize_facet_value(value)}" if value else "Keep type",
        description=lambda value: "I broadened to related product types so you can compare close matches.",
    ),
    RelaxationRule(
        facet="style",
        label=lambda value: f"Stay with {humanize_facet_value(value)}" if value else "Keep current style",
        description=lambda value: (
            "That exact style is tight right now. I broadened to nearby styles so you still get something similar."
            if value
            else "I loosened the style filter so you can see adjacent options."
        ),
    ),
    RelaxationRule(
        facet="use_case",
        label=lambda value: f"Keep {humanize_facet_value(value)}" if value else "Keep use case",
        description=lambda value: "I relaxed the activity filter so you can compare close matches.",
    ),
    RelaxationRule(
        facet="vendor",
        label=lambda value: f"Only {value}" if value else "Keep brand",
        description=lambda value: (
            "That brand is low on stock. I included similar brands so you still get the same spec."
            if value
            else "I opened the brand filter to show comparable options."
        ),
    ),
]


@dataclass(frozen=True)
class RelaxationStep:
    facet: str
    previous_value: Optional[str]
    description: str
    undo: Optional[QuickReply] = None

    def to_payload(self) -> Dict[str, Optional[str]]:
        return {
            "facet": self.facet,
            "previous_value": self.previous_value,
            "description": self.description,
            "undo_label": self.undo.label if self.undo else None,
        }


@dataclass
class RelaxationOutcome:
    retrieval: RetrievalResult
    filters: Dict[str, str]
    steps: List[RelaxationStep] = field(default_factory=list)

    @property
    def relaxed(self) -> Dict[str, str]:
        return {step.facet: step.previous_value for step in self.steps if step.previous_value}

    @property
    def undo_options(self) -> List[QuickReply]:
        return [step.undo for step in self.steps if step.undo is not None]

    @property
    def notes(self) -> List[str]:
        return [step.description for step in self.steps]

    @property
    def exhausted(self) -> bool:
        return self.retrieval.count == 0


def relaxation_order(filters: Dict[str, str]) -> List[RelaxationRule]:
    known = {rule.facet for rule in RELAXATION_PRIORITY}
    ordered = [rule for rule in RELAXATION_PRIORITY if rule.facet in filters]
    ordered.extend(_generic_rule(facet) for facet in sorted(filters) if facet not in known)
    return ordered


class RelaxationEngine:
    """Loosens an over-constrained search one filter at a time."""

    def __init__(self, retrieval_service: RetrievalService, *, max_steps: int = DEFAULT_MAX_STEPS):
        self._retrieval = retrieval_service
        self.max_steps = max(0, int(max_steps))

    async def relax(
        self,
        *,
        retrieval: RetrievalResult,
        filters: Dict[str, str],
        shop_id: str,
        lexical_query: str,
        embedding: List[float],
        limit: int,
    ) -> RelaxationOutcome:
        working_filters = dict(filters)
        outcome = RelaxationOutcome(retrieval=retrieval, filters=working_filters)

        for rule in relaxation_order(filters):
            if outcome.retrieval.count > 0 or len(outcome.steps) >= self.max_steps:
                break
            if rule.facet not in working_filters:
                continue

            previous_value = working_filters.pop(rule.facet)
            # Retrieval errors propagate: a failed re-query fails the turn.
            outcome.retrieval = await self._retrieval.search(
                shop_id=shop_id,
                lexical_query=lexical_query,
                embedding=embedding,
                limit=limit,
                active_filters=dict(working_filters),
            )
            undo = (
                QuickReply(id=f"undo_{rule.facet}", label=rule.label(previous_value), value=previous_value)
                if previous_value
                else None
            )
            outcome.steps.append(
                RelaxationStep(
                    facet=rule.facet,
                    previous_value=previous_value,
                    description=rule.description(previous_value),
                    undo=undo,
                )
            )
            logger.info(
                "relaxed facet=%s previous=%s results=%d",
                rule.facet,
                previous_value,
                outcome.retrieval.count,
            )

        outcome.filters = working_filters
        return outcome
