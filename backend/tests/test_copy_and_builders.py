import pytest

from concierge.schemas.session import ClarifierOption, FactSheet
from concierge.schemas.turn import QuickReply
from concierge.services.chat.components import BuilderContext, SegmentRegistry, TurnPlanner
from concierge.services.chat.copy_writer import DETAIL_PREFIXES, CopyBlock, CopySlots, TemplateCopyWriter, counted_noun
from concierge.services.chat.types import ConversationMode, SegmentType, TurnTopic

from factories import make_product


def _copy() -> CopyBlock:
    return CopyBlock(lead="Lead", detail="Detail", template_id="test")


def test_clarify_copy_is_deterministic() -> None:
    writer = TemplateCopyWriter()
    slots = CopySlots(count=17, category="snowboard", facet="style", facet_label="style")

    first = writer.write(ConversationMode.CLARIFY, TurnTopic.COMMERCE, slots)
    second = writer.write(ConversationMode.CLARIFY, TurnTopic.COMMERCE, slots)

    assert first == second
    assert first.template_id == "clarify_many"
    assert first.lead == "I found several snowboards that could work for you."
    assert any(first.detail.startswith(prefix) for prefix in DETAIL_PREFIXES)
    assert "what style matters most" in first.detail


@pytest.mark.parametrize(
    "mode,topic,slots,template_id",
    [
        (ConversationMode.CLARIFY, TurnTopic.COMMERCE, CopySlots(count=5, facet="style"), "clarify_default"),
        (ConversationMode.CLARIFY, TurnTopic.COMMERCE, CopySlots(count=5), "clarify_forced"),
        (ConversationMode.CLARIFY, TurnTopic.COMMERCE, CopySlots(needs_referent=True), "clarify_referent"),
        (ConversationMode.RECOMMEND, TurnTopic.COMMERCE, CopySlots(count=2, price_range="Under $300"), "recommend_price"),
        (ConversationMode.RECOMMEND, TurnTopic.COMMERCE, CopySlots(count=2, brands=["Burton"]), "recommend_brand"),
        (ConversationMode.RECOMMEND, TurnTopic.COMMERCE, CopySlots(count=1), "recommend_default"),
        (ConversationMode.COMPARE, TurnTopic.COMMERCE, CopySlots(count=2), "compare_default"),
        (ConversationMode.CHAT, TurnTopic.RAPPORT, CopySlots(), "rapport"),
        (ConversationMode.CHAT, TurnTopic.POLICY_INFO, CopySlots(user_query="shipping cost?"), "policy_shipping"),
        (ConversationMode.CHAT, TurnTopic.POLICY_INFO, CopySlots(user_query="refund please"), "policy_returns"),
        (ConversationMode.CHAT, TurnTopic.STORE_INFO, CopySlots(primary_category="snowboard"), "store_info"),
    ],
)
def test_template_selection(mode, topic, slots, template_id) -> None:
    block = TemplateCopyWriter().write(mode, topic, slots)

    assert block.template_id == template_id
    assert "{" not in block.lead and "{" not in block.detail


def test_missing_slots_leave_no_placeholders() -> None:
    block = TemplateCopyWriter(detail_prefixes=False).write(ConversationMode.DEAD_END, TurnTopic.COMMERCE, CopySlots())

    assert block.detail == "Try one of these options or browse our collection."


def test_counted_noun() -> None:
    assert counted_noun("snowboard", 1) == "1 snowboard"
    assert counted_noun("binding", 3) == "3 bindings"
    assert counted_noun(None, 0) == "items"


@pytest.mark.parametrize(
    "mode,expected",
    [
        (ConversationMode.CHAT, [SegmentType.NARRATIVE]),
        (ConversationMode.CLARIFY, [SegmentType.NARRATIVE, SegmentType.PRODUCTS, SegmentType.ASK, SegmentType.OPTIONS]),
        (ConversationMode.RECOMMEND, [SegmentType.NARRATIVE, SegmentType.PRODUCTS, SegmentType.EVIDENCE]),
        (
            ConversationMode.COMPARE,
            [SegmentType.NARRATIVE, SegmentType.PRODUCTS, SegmentType.COMPARISON, SegmentType.EVIDENCE],
        ),
        (ConversationMode.DEAD_END, [SegmentType.NARRATIVE, SegmentType.OPTIONS]),
    ],
)
def test_planner_segments_per_mode(mode: ConversationMode, expected) -> None:
    context = BuilderContext(mode=mode, topic=TurnTopic.COMMERCE, copy=_copy(), products=[make_product("p1")])

    assert TurnPlanner.plan(context) == expected


def test_planner_adds_undo_options_and_notes() -> None:
    context = BuilderContext(
        mode=ConversationMode.RECOMMEND,
        topic=TurnTopic.COMMERCE,
        copy=_copy(),
        products=[make_product("p1")],
        undo_options=[QuickReply(id="undo_price_bucket", label="Keep Under $50", value="Under $50")],
        notes=["I widened the budget to find matches."],
    )

    assert TurnPlanner.plan(context)[-2:] == [SegmentType.OPTIONS, SegmentType.NOTE]


@pytest.mark.asyncio
@pytest.mark.regression
async def test_clarify_segments_cap_previews_and_carry_options() -> None:
    context = BuilderContext(
        mode=ConversationMode.CLARIFY,
        topic=TurnTopic.COMMERCE,
        copy=_copy(),
        products=[make_product(f"p{index}") for index in range(5)],
        clarifier_facet="style",
        clarifier_question="Which style?",
        clarifier_options=[ClarifierOption(label="Park", value="park"), ClarifierOption(label="Powder", value="powder")],
    )

    segments = await SegmentRegistry.build_segments(segment_types=TurnPlanner.plan(context), context=context)
    by_type = {segment.type: segment for segment in segments}

    assert by_type[SegmentType.NARRATIVE].data["template_id"] == "test"
    assert by_type[SegmentType.PRODUCTS].data["role"] == "preview"
    assert len(by_type[SegmentType.PRODUCTS].data["items"]) == 2
    assert by_type[SegmentType.ASK].data == {"facet": "style", "question": "Which style?"}
    options = by_type[SegmentType.OPTIONS].data
    assert options["kind"] == "clarifier"
    assert [choice["value"] for choice in options["choices"]] == ["park", "powder"]


@pytest.mark.asyncio
async def test_evidence_prefers_fact_sheets_and_falls_back_to_catalog() -> None:
    context = BuilderContext(
        mode=ConversationMode.RECOMMEND,
        topic=TurnTopic.COMMERCE,
        copy=_copy(),
        products=[make_product("p1"), make_product("p2", tags=["camber"])],
        fact_sheets={"p1": FactSheet(id="p1", summary="Stiff flex for big mountain riding")},
    )

    segment = await SegmentRegistry.builder_for(SegmentType.EVIDENCE).build(context)
    first, second = segment.data["items"]

    assert first == {"product_id": "p1", "source": "fact_sheet", "reasons": ["Stiff flex for big mountain riding"]}
    assert second["source"] == "catalog"
    assert second["reasons"] == ["Priced at $120.00 USD", "Made by Burton", "Features: Camber"]


@pytest.mark.asyncio
async def test_comparison_lines_up_base_and_spec_rows() -> None:
    context = BuilderContext(
        mode=ConversationMode.COMPARE,
        topic=TurnTopic.COMMERCE,
        copy=_copy(),
        products=[make_product("p1", price=300.0), make_product("p2", price=450.0, vendor="Jones")],
        fact_sheets={"p2": FactSheet(id="p2", specs={"flex": "stiff"})},
    )

    segment = await SegmentRegistry.builder_for(SegmentType.COMPARISON).build(context)
    rows = {row["attribute"]: row["values"] for row in segment.data["rows"]}

    assert segment.data["product_ids"] == ["p1", "p2"]
    assert rows["Price"] == [300.0, 450.0]
    assert rows["Brand"] == ["Burton", "Jones"]
    assert rows["flex"] == [None, "stiff"]
