import pytest

from concierge.core.config import Settings
from concierge.schemas.turn import QuickReply
from concierge.services.catalog.models import RetrievalResult
from concierge.services.chat.modes import ChatMode, ClarifyMode, CompareMode, DeadEndMode, RecommendMode
from concierge.services.chat.routing_gates import (
    MAX_DEAD_END_OPTIONS,
    ModeRouter,
    RoutingPolicy,
    dead_end_alternatives,
    has_comparison_intent,
)
from concierge.services.chat.types import ConversationMode, TurnTopic

from factories import make_retrieval


def _decide(retrieval: RetrievalResult, *, topic=TurnTopic.COMMERCE, message="", history=None, filters=None, router=None):
    return (router or ModeRouter()).decide(
        topic=topic,
        retrieval=retrieval,
        clarifier_history=history or {},
        active_filters=filters or {},
        user_message=message,
    )


@pytest.mark.regression
@pytest.mark.parametrize("topic", [TurnTopic.RAPPORT, TurnTopic.STORE_INFO, TurnTopic.POLICY_INFO, TurnTopic.PRODUCT_INFO])
def test_non_commerce_topics_always_chat(topic: TurnTopic) -> None:
    decision = _decide(make_retrieval(17, facets={"style": {"park", "powder"}}), topic=topic)

    assert isinstance(decision.mode, ChatMode)
    assert decision.decided_by == "non_commerce_topic"


@pytest.mark.regression
def test_zero_results_is_dead_end_with_alternatives() -> None:
    decision = _decide(RetrievalResult.empty())

    assert isinstance(decision.mode, DeadEndMode)
    assert len(decision.mode.alternatives) >= 1
    assert decision.decided_by == "no_results"


def test_low_groundability_answers_conversationally() -> None:
    decision = _decide(make_retrieval(3, score=0.1))

    assert isinstance(decision.mode, ChatMode)
    assert decision.decided_by == "low_groundability"
    assert decision.groundability < 0.35


@pytest.mark.regression
def test_seventeen_results_clarify_not_recommend() -> None:
    decision = _decide(make_retrieval(17, facets={"style": {"park", "powder", "freestyle"}}))

    assert isinstance(decision.mode, ClarifyMode)
    assert decision.mode.kind == ConversationMode.CLARIFY
    assert decision.decided_by == "always_clarify_above"
    assert decision.mode.facet == "style"
    assert 2 <= len(decision.mode.options) <= 6
    assert len(decision.mode.preview_ids) <= 2


@pytest.mark.regression
def test_many_results_without_facet_force_a_fallback_clarifier() -> None:
    decision = _decide(make_retrieval(17))

    assert isinstance(decision.mode, ClarifyMode)
    assert decision.decided_by == "forced_clarify"
    assert decision.mode.forced is True
    assert decision.mode.facet == "style"
    assert [option.value for option in decision.mode.options] == ["all_mountain", "freestyle", "powder", "park"]


def test_forced_clarify_skips_exhausted_fallback_facets() -> None:
    decision = _decide(make_retrieval(17), history={"style": 2})

    assert isinstance(decision.mode, ClarifyMode)
    assert decision.mode.facet == "price_bucket"


@pytest.mark.regression
def test_two_results_with_compare_language_compare() -> None:
    decision = _decide(make_retrieval(2), message="can you compare these for me")

    assert isinstance(decision.mode, CompareMode)
    assert decision.mode.product_ids == ("p1", "p2")
    assert decision.decided_by == "comparison_intent"


@pytest.mark.regression
def test_difference_question_over_two_results_compares() -> None:
    decision = _decide(make_retrieval(2), message="what's the difference between these two boards")

    assert isinstance(decision.mode, CompareMode)
    assert decision.decided_by == "comparison_intent"


@pytest.mark.regression
@pytest.mark.parametrize("count", [1, 2, 3])
def test_small_set_recommends(count: int) -> None:
    decision = _decide(make_retrieval(count), message="show me boards")

    assert isinstance(decision.mode, RecommendMode)
    assert len(decision.mode.product_ids) == count
    assert decision.decided_by == "small_set"


def test_medium_set_clarifies_when_facet_available_else_recommends() -> None:
    router = ModeRouter(RoutingPolicy(always_clarify_above=10))

    with_facet = _decide(make_retrieval(6, facets={"style": {"park", "powder"}}), router=router)
    without_facet = _decide(make_retrieval(6), router=router)

    assert isinstance(with_facet.mode, ClarifyMode)
    assert with_facet.decided_by == "facet_available"
    assert isinstance(without_facet.mode, RecommendMode)
    assert without_facet.decided_by == "no_usable_facet"
    assert len(without_facet.mode.product_ids) <= 3


@pytest.mark.regression
@pytest.mark.parametrize("count", [0, 1, 2, 3, 4, 7, 17, 40])
def test_product_cap_holds_for_every_mode(count: int) -> None:
    router = ModeRouter(RoutingPolicy(small_set_cap=10, always_clarify_above=50))
    decision = _decide(make_retrieval(count, facets={"style": {"park", "powder"}}), router=router, message="compare")

    mode = decision.mode
    if isinstance(mode, ClarifyMode):
        assert len(mode.preview_ids) <= 2
    elif isinstance(mode, (RecommendMode, CompareMode)):
        assert 1 <= len(mode.product_ids) <= 3


def test_comparison_intent_detection() -> None:
    assert has_comparison_intent("compare the two") is True
    assert has_comparison_intent("burton vs jones") is True
    assert has_comparison_intent("custom versus process") is True
    assert has_comparison_intent("any difference in flex") is True
    assert has_comparison_intent("a comparable board") is False


def test_dead_end_alternatives_put_undo_first_and_cap() -> None:
    undo = [QuickReply(id="undo_price_bucket", label="Keep Under $50", value="Under $50")]

    merged = dead_end_alternatives(undo)

    assert merged[0].id == "undo_price_bucket"
    assert len(merged) <= MAX_DEAD_END_OPTIONS
    assert {reply.id for reply in merged[1:]} == {"browse_popular", "notify_me", "expert_help"}


def test_policy_from_settings_overrides_only_what_is_set() -> None:
    config = Settings(ROUTING_ALWAYS_CLARIFY_ABOVE=8, ROUTING_GROUNDABILITY_THRESHOLD=0.0)

    policy = RoutingPolicy.from_settings(config)

    assert policy.always_clarify_above == 8
    assert policy.groundability_threshold == 0.0
    assert policy.small_set_cap == 3
