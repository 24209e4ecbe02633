"""Deterministic mode selection.

Gates are evaluated in a fixed order and exactly one mode comes out of every
call. The ordering prefers never overwhelming the shopper (the clarify ceiling
fires before the curated-set gate) and never asking a question that cannot
narrow the set (no usable facet falls through to recommend).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence

from concierge.core.config import Settings, settings
from concierge.schemas.turn import QuickReply
from concierge.services.catalog.models import RetrievalResult
from concierge.services.chat.clarifier_config import build_options, fallback_options, pick_fallback_facet
from concierge.services.chat.facet_selector import (
    ENTROPY_MIN,
    FacetChoice,
    exhausted_facets,
    select_best_facet,
)
from concierge.services.chat.groundability import calculate_groundability
from concierge.services.chat.modes import (
    ChatMode,
    ClarifyMode,
    CompareMode,
    DeadEndMode,
    Mode,
    RecommendMode,
)
from concierge.services.chat.topic_classifier import has_comparison_intent
from concierge.services.chat.types import TurnTopic

SMALL_SET_CAP = 3
MAX_PRODUCTS_PER_TURN = 3
CLARIFY_PREVIEW_CAP = 2
GROUNDABILITY_THRESHOLD = 0.35
ALWAYS_CLARIFY_ABOVE = 3
COMPARE_MIN = 2
COMPARE_MAX = 3

NON_COMMERCE_TOPICS = frozenset(
    {TurnTopic.RAPPORT, TurnTopic.STORE_INFO, TurnTopic.POLICY_INFO, TurnTopic.PRODUCT_INFO}
)

DEAD_END_ALTERNATIVES: Sequence[QuickReply] = (
    QuickReply(id="browse_popular", label="Show best-sellers", value="show me your best-sellers"),
    QuickReply(id="notify_me", label="Notify me when it's back", value="notify me"),
    QuickReply(id="expert_help", label="Talk to an expert", value="talk to a human"),
)
MAX_DEAD_END_OPTIONS = 4


@dataclass(frozen=True)
class RoutingPolicy:
    small_set_cap: int = SMALL_SET_CAP
    always_clarify_above: int = ALWAYS_CLARIFY_ABOVE
    groundability_threshold: float = GROUNDABILITY_THRESHOLD
    entropy_min: float = ENTROPY_MIN
    clarify_preview_cap: int = CLARIFY_PREVIEW_CAP

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "RoutingPolicy":
        defaults = cls()
        return cls(
            small_set_cap=config.ROUTING_SMALL_SET_CAP or defaults.small_set_cap,
            always_clarify_above=config.ROUTING_ALWAYS_CLARIFY_ABOVE or defaults.always_clarify_above,
            groundability_threshold=(
                config.ROUTING_GROUNDABILITY_THRESHOLD
                if config.ROUTING_GROUNDABILITY_THRESHOLD is not None
                else defaults.groundability_threshold
            ),
            entropy_min=(
                config.ROUTING_ENTROPY_MIN if config.ROUTING_ENTROPY_MIN is not None else defaults.entropy_min
            ),
        )


@dataclass(frozen=True)
class RouteDecision:
    mode: Mode
    topic: TurnTopic
    decided_by: str
    groundability: float = 0.0
    facet: Optional[FacetChoice] = None
    comparison_intent: bool = False
    asked_facets: List[str] = field(default_factory=list)

    def audit(self) -> dict:
        return {
            "mode": self.mode.kind.value,
            "topic": self.topic.value,
            "decided_by": self.decided_by,
            "groundability": self.groundability,
            "facet": self.facet.facet if self.facet else None,
            "facet_entropy": round(self.facet.entropy, 4) if self.facet else 0.0,
            "comparison_intent": self.comparison_intent,
            "asked_facets": list(self.asked_facets),
        }


def dead_end_alternatives(undo_options: Iterable[QuickReply] = ()) -> tuple:
    merged: List[QuickReply] = list(undo_options) + list(DEAD_END_ALTERNATIVES)
    return tuple(merged[:MAX_DEAD_END_OPTIONS])


class ModeRouter:
    def __init__(self, policy: Optional[RoutingPolicy] = None):
        self.policy = policy or RoutingPolicy()

    def clarify_mode(
        self,
        retrieval: RetrievalResult,
        facet: Optional[FacetChoice],
        *,
        excluded: Iterable[str],
    ) -> ClarifyMode:
        preview = tuple(product.id for product in retrieval.products[: min(self.policy.clarify_preview_cap, CLARIFY_PREVIEW_CAP)])
        if facet is not None:
            return ClarifyMode(facet=facet.facet, options=tuple(build_options(facet.facet, facet.values)), preview_ids=preview)

        # Forced clarify: no facet splits the set, fall back to the curated catalog.
        fallback = pick_fallback_facet(excluded)
        if fallback is None:
            return ClarifyMode(facet=None, options=(), preview_ids=preview, forced=True)
        return ClarifyMode(facet=fallback, options=tuple(fallback_options(fallback)), preview_ids=preview, forced=True)

    def top_ids(self, retrieval: RetrievalResult, limit: int) -> tuple:
        return tuple(product.id for product in retrieval.products[: min(limit, MAX_PRODUCTS_PER_TURN)])

    def decide(
        self,
        *,
        topic: TurnTopic,
        retrieval: RetrievalResult,
        clarifier_history: Mapping[str, int],
        active_filters: Mapping[str, str],
        user_message: str = "",
        blocked_facets: Iterable[str] = (),
        undo_options: Iterable[QuickReply] = (),
    ) -> RouteDecision:
        asked = sorted(clarifier_history.keys())

        # Gate 1: non-commerce topics never carry products or clarifiers.
        if topic in NON_COMMERCE_TOPICS:
            return RouteDecision(mode=ChatMode(reason=topic.value), topic=topic, decided_by="non_commerce_topic", asked_facets=asked)

        count = retrieval.count

        # Gate 2: nothing to show.
        if count == 0:
            return RouteDecision(
                mode=DeadEndMode(alternatives=dead_end_alternatives(undo_options)),
                topic=topic,
                decided_by="no_results",
                asked_facets=asked,
            )

        # Gate 3: weak retrieval is answered conversationally.
        groundability = calculate_groundability(retrieval)
        if groundability < self.policy.groundability_threshold:
            return RouteDecision(
                mode=ChatMode(reason="low_groundability"),
                topic=topic,
                decided_by="low_groundability",
                groundability=groundability,
                asked_facets=asked,
            )

        blocked = list(blocked_facets)
        facet = select_best_facet(
            retrieval,
            clarifier_history=clarifier_history,
            active_filters=active_filters,
            user_message=user_message,
            blocked=blocked,
            entropy_min=self.policy.entropy_min,
        )
        excluded = exhausted_facets(clarifier_history) | set(active_filters.keys()) | set(blocked)
        comparison = has_comparison_intent(user_message)

        # Gate 4: too many matches, always narrow down first.
        if count > self.policy.always_clarify_above:
            return RouteDecision(
                mode=self.clarify_mode(retrieval, facet, excluded=excluded),
                topic=topic,
                decided_by="always_clarify_above" if facet else "forced_clarify",
                groundability=groundability,
                facet=facet,
                comparison_intent=comparison,
                asked_facets=asked,
            )

        # Gate 5: explicit comparison over a small set.
        if comparison and COMPARE_MIN <= count <= COMPARE_MAX:
            return RouteDecision(
                mode=CompareMode(product_ids=self.top_ids(retrieval, COMPARE_MAX)),
                topic=topic,
                decided_by="comparison_intent",
                groundability=groundability,
                comparison_intent=True,
                asked_facets=asked,
            )

        # Gate 6: already a curated set.
        if count <= self.policy.small_set_cap:
            return RouteDecision(
                mode=RecommendMode(product_ids=self.top_ids(retrieval, self.policy.small_set_cap)),
                topic=topic,
                decided_by="small_set",
                groundability=groundability,
                comparison_intent=comparison,
                asked_facets=asked,
            )

        # Gate 7: medium sets clarify when a facet can actually split them.
        if facet is not None:
            return RouteDecision(
                mode=self.clarify_mode(retrieval, facet, excluded=excluded),
                topic=topic,
                decided_by="facet_available",
                groundability=groundability,
                facet=facet,
                comparison_intent=comparison,
                asked_facets=asked,
            )

        return RouteDecision(
            mode=RecommendMode(product_ids=self.top_ids(retrieval, self.policy.small_set_cap)),
            topic=topic,
            decided_by="no_usable_facet",
            groundability=groundability,
            comparison_intent=comparison,
            asked_facets=asked,
        )
