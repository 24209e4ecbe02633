import pytest

from concierge.services.chat.topic_classifier import (
    DEFAULT_RULE,
    TOPIC_RULES,
    classify,
    classify_topic,
    has_comparison_intent,
    is_rapport,
    is_self_contained,
)
from concierge.services.chat.types import TurnTopic


@pytest.mark.regression
@pytest.mark.parametrize(
    "text,expected_topic,expected_rule",
    [
        ("Hi there!", TurnTopic.RAPPORT, "rapport"),
        ("thanks so much", TurnTopic.RAPPORT, "rapport"),
        ("What is your return policy?", TurnTopic.POLICY_INFO, "policy"),
        ("do you offer free shipping", TurnTopic.POLICY_INFO, "policy"),
        ("what do you sell", TurnTopic.STORE_INFO, "store_identity"),
        ("what's the best price under $200", TurnTopic.COMMERCE, "price_mention"),
        ("what is a good board for $300", TurnTopic.COMMERCE, "price_mention"),
        ("I'm looking for a powder board", TurnTopic.COMMERCE, "shopping_verb"),
        ("compare the custom and the process", TurnTopic.COMMERCE, "shopping_verb"),
        ("what's the difference between these two boards", TurnTopic.COMMERCE, "shopping_verb"),
        ("tell me about this store", TurnTopic.STORE_INFO, "store_identity"),
        ("is that covered by warranty", TurnTopic.POLICY_INFO, "policy"),
        ("what is camber", TurnTopic.PRODUCT_INFO, "informational"),
        ("explain rocker profiles", TurnTopic.PRODUCT_INFO, "informational"),
        ("snowboards", TurnTopic.COMMERCE, DEFAULT_RULE),
    ],
)
def test_classify_rule_table(text: str, expected_topic: TurnTopic, expected_rule: str) -> None:
    decision = classify(text)

    assert decision.topic == expected_topic
    assert decision.rule == expected_rule


@pytest.mark.regression
def test_price_mention_outranks_informational_phrasing() -> None:
    names = [rule.name for rule in TOPIC_RULES]

    assert names.index("price_mention") < names.index("informational")
    assert names.index("shopping_verb") < names.index("informational")
    assert classify_topic("what's the best price under $200") == TurnTopic.COMMERCE


def test_classify_is_total_for_empty_and_odd_input() -> None:
    assert classify("").topic == TurnTopic.COMMERCE
    assert classify("   ").rule == DEFAULT_RULE
    assert classify("¯\\_(ツ)_/¯").topic == TurnTopic.COMMERCE


def test_is_rapport_ignores_case_and_spacing() -> None:
    assert is_rapport("  HELLO  ") is True
    assert is_rapport("show me boards") is False


@pytest.mark.regression
@pytest.mark.parametrize(
    "text",
    [
        "compare the custom and the process",
        "custom vs process",
        "what's the difference between these two boards",
        "any differences in the flex?",
    ],
)
def test_comparison_language_is_shopping_and_comparison_intent(text: str) -> None:
    assert classify_topic(text) == TurnTopic.COMMERCE
    assert has_comparison_intent(text) is True


def test_self_contained_covers_greetings_policy_and_store_questions() -> None:
    assert is_self_contained("hey") is True
    assert is_self_contained("is that covered by warranty") is True
    assert is_self_contained("tell me about this store") is True
    assert is_self_contained("what is camber") is False
    assert is_self_contained("do they run small") is False
