from typing import List, Optional

import pytest

from concierge.schemas.turn import ChatTurn, Segment, TurnMetadata
from concierge.services.chat.coherence_gate import CoherenceGate
from concierge.services.chat.types import ConversationMode, SegmentType, TurnTopic


def _turn(
    mode: ConversationMode,
    *,
    topic: TurnTopic = TurnTopic.COMMERCE,
    products: int = 0,
    clarifier_options: Optional[int] = None,
    alternatives: int = 0,
    compared: Optional[List[str]] = None,
) -> ChatTurn:
    segments = [Segment(type=SegmentType.NARRATIVE, data={"lead": "Hi", "detail": ""})]
    if products:
        items = [{"id": f"p{index}"} for index in range(products)]
        segments.append(Segment(type=SegmentType.PRODUCTS, data={"role": "recommendation", "items": items}))
    if clarifier_options is not None:
        segments.append(Segment(type=SegmentType.ASK, data={"facet": "style", "question": "Which style?"}))
        choices = [{"label": f"o{index}", "value": f"o{index}"} for index in range(clarifier_options)]
        segments.append(Segment(type=SegmentType.OPTIONS, data={"kind": "clarifier", "choices": choices}))
    if alternatives:
        choices = [{"id": f"a{index}", "label": f"alt {index}"} for index in range(alternatives)]
        segments.append(Segment(type=SegmentType.OPTIONS, data={"kind": "alternatives", "choices": choices}))
    if compared is not None:
        segments.append(Segment(type=SegmentType.COMPARISON, data={"product_ids": compared, "rows": []}))
    return ChatTurn(
        turn_id="turn_test",
        segments=segments,
        metadata=TurnMetadata(mode=mode, topic=topic, decided_by="test"),
    )


@pytest.mark.regression
@pytest.mark.parametrize(
    "turn",
    [
        _turn(ConversationMode.CLARIFY, clarifier_options=3, products=2),
        _turn(ConversationMode.RECOMMEND, products=3),
        _turn(ConversationMode.COMPARE, products=2, compared=["p0", "p1"]),
        _turn(ConversationMode.DEAD_END, alternatives=2),
        _turn(ConversationMode.CHAT, topic=TurnTopic.RAPPORT),
    ],
)
def test_coherent_turns_pass(turn: ChatTurn) -> None:
    assert CoherenceGate.check(turn) is None


@pytest.mark.regression
@pytest.mark.parametrize(
    "turn,expected",
    [
        (_turn(ConversationMode.CHAT, topic=TurnTopic.POLICY_INFO, products=1), ConversationMode.CHAT),
        (_turn(ConversationMode.CLARIFY, clarifier_options=1), ConversationMode.RECOMMEND),
        (_turn(ConversationMode.CLARIFY, clarifier_options=7), ConversationMode.RECOMMEND),
        (_turn(ConversationMode.CLARIFY, clarifier_options=3, products=3), ConversationMode.RECOMMEND),
        (_turn(ConversationMode.RECOMMEND, products=2, clarifier_options=3), ConversationMode.CLARIFY),
        (_turn(ConversationMode.RECOMMEND), ConversationMode.DEAD_END),
        (_turn(ConversationMode.RECOMMEND, products=5), ConversationMode.CLARIFY),
        (_turn(ConversationMode.COMPARE, products=2), ConversationMode.RECOMMEND),
        (_turn(ConversationMode.COMPARE, products=1, compared=["p0"]), ConversationMode.RECOMMEND),
        (_turn(ConversationMode.DEAD_END, products=1, alternatives=1), ConversationMode.RECOMMEND),
        (_turn(ConversationMode.DEAD_END), ConversationMode.CHAT),
        (_turn(ConversationMode.CHAT, products=2), ConversationMode.RECOMMEND),
    ],
)
def test_incoherent_turns_are_corrected(turn: ChatTurn, expected: ConversationMode) -> None:
    correction = CoherenceGate.check(turn)

    assert correction is not None
    assert correction.corrected_mode == expected
    assert correction.reason
