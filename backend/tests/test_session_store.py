import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import concierge.models  # noqa: F401
from concierge.db.base import Base
from concierge.schemas.session import (
    ClarifierOption,
    PendingClarifier,
    SessionPatch,
    SessionState,
    TopicAnchor,
)
from concierge.services.chat.types import AnchorKind
from concierge.services.session_store import MemorySessionStore, SqlSessionStore, merge_patch


async def _sql_store():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, SqlSessionStore(factory)


@pytest.mark.regression
def test_merge_replaces_filters_and_unions_slots() -> None:
    current = SessionState(
        active_filters={"style": "park", "vendor": "Burton"},
        clarifier_history={"style": 1},
        asked_slots=["style"],
        dialogue_summary="earlier",
    )
    patch = SessionPatch(
        active_filters={"price_bucket": "Under $50"},
        clarifier_history={"price_bucket": 1},
        asked_slots=["price_bucket", "style"],
    )

    merged = merge_patch(current, patch)

    assert merged.active_filters == {"price_bucket": "Under $50"}
    assert merged.clarifier_history == {"style": 1, "price_bucket": 1}
    assert merged.asked_slots == ["style", "price_bucket"]
    assert merged.dialogue_summary == "earlier"


def test_merge_applies_explicit_none_to_optional_fields() -> None:
    current = SessionState(
        pending_clarifier=PendingClarifier(facet="style", options=[ClarifierOption(label="Park", value="park")]),
        topic_anchor=TopicAnchor(kind=AnchorKind.CATEGORY, text="snowboard", confidence=0.8),
        turn_count=4,
    )

    merged = merge_patch(current, SessionPatch(pending_clarifier=None, turn_count=None))

    assert merged.pending_clarifier is None
    assert merged.topic_anchor is not None
    assert merged.turn_count == 4


@pytest.mark.asyncio
async def test_memory_store_round_trip_is_isolated() -> None:
    store = MemorySessionStore()

    session_id, state = await store.load("shop-1", "guest_1")
    state.active_filters["style"] = "park"
    saved = await store.save(session_id, SessionPatch(turn_count=1, active_filters={"vendor": "Jones"}))
    same_id, reloaded = await store.load("shop-1", "guest_1")
    other_id, _ = await store.load("shop-2", "guest_1")

    assert same_id == session_id
    assert other_id != session_id
    assert saved.turn_count == 1
    assert reloaded.active_filters == {"vendor": "Jones"}


@pytest.mark.asyncio
async def test_sql_store_persists_state() -> None:
    engine, store = await _sql_store()
    try:
        session_id, state = await store.load("shop-1", "guest_1")
        assert state == SessionState()

        await store.save(
            session_id,
            SessionPatch(
                active_filters={"style": "powder"},
                asked_slots=["style"],
                turn_count=1,
                topic_anchor=TopicAnchor(kind=AnchorKind.BRAND, text="Burton", confidence=1.0),
            ),
        )
        again_id, reloaded = await store.load("shop-1", "guest_1")

        assert again_id == session_id
        assert reloaded.active_filters == {"style": "powder"}
        assert reloaded.asked_slots == ["style"]
        assert reloaded.turn_count == 1
        assert reloaded.topic_anchor.kind == AnchorKind.BRAND
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_sql_store_rejects_unknown_session() -> None:
    engine, store = await _sql_store()
    try:
        with pytest.raises(KeyError):
            await store.save("missing", SessionPatch(turn_count=1))
    finally:
        await engine.dispose()
