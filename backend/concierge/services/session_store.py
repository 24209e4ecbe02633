from __future__ import annotations

import uuid
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from concierge.core.logging import get_logger
from concierge.models.conversation_session import ConversationSession
from concierge.schemas.session import SessionPatch, SessionState

logger = get_logger(__name__)


def merge_patch(current: SessionState, patch: SessionPatch) -> SessionState:
    """Apply a patch with field-specific rules.

    Only fields set on the patch are applied. Asked slots are unioned in order,
    clarifier history counts are merged key by key, and every other field
    (active filters included) is overwritten.
    """
    updates = patch.model_dump(exclude_unset=True)
    merged = current.model_dump()

    if "asked_slots" in updates:
        slots = list(current.asked_slots)
        for slot in updates.pop("asked_slots") or []:
            if slot not in slots:
                slots.append(slot)
        merged["asked_slots"] = slots

    if "clarifier_history" in updates:
        history = dict(current.clarifier_history)
        history.update(updates.pop("clarifier_history") or {})
        merged["clarifier_history"] = history

    for key, value in updates.items():
        if value is None and key in {"active_filters", "relaxed_filters", "turn_count", "zero_result_streak"}:
            continue
        merged[key] = value
    return SessionState.model_validate(merged)


class MemorySessionStore:
    """Process-local store. Suitable for tests and single-worker deployments."""

    def __init__(self):
        self._ids: Dict[Tuple[str, str], str] = {}
        self._states: Dict[str, SessionState] = {}

    async def load(self, shop_id: str, session_key: str) -> Tuple[str, SessionState]:
        key = (shop_id, session_key)
        session_id = self._ids.get(key)
        if session_id is None:
            session_id = uuid.uuid4().hex
            self._ids[key] = session_id
            self._states[session_id] = SessionState()
        return session_id, self._states[session_id].model_copy(deep=True)

    async def save(self, session_id: str, patch: SessionPatch) -> SessionState:
        current = self._states.get(session_id, SessionState())
        merged = merge_patch(current, patch)
        self._states[session_id] = merged
        return merged.model_copy(deep=True)


class SqlSessionStore:
    """SessionState persisted as JSON in ``conversation_sessions``."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def load(self, shop_id: str, session_key: str) -> Tuple[str, SessionState]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ConversationSession).where(
                    ConversationSession.shop_id == shop_id,
                    ConversationSession.session_key == session_key,
                )
            )
            row: Optional[ConversationSession] = result.scalar_one_or_none()
            if row is None:
                row = ConversationSession(
                    id=uuid.uuid4().hex,
                    shop_id=shop_id,
                    session_key=session_key,
                    state=SessionState().model_dump(mode="json"),
                    turn_count=0,
                )
                db.add(row)
                await db.commit()
                logger.info("created session shop=%s key=%s id=%s", shop_id, session_key, row.id)
            return row.id, SessionState.model_validate(row.state or {})

    async def save(self, session_id: str, patch: SessionPatch) -> SessionState:
        async with self._session_factory() as db:
            row = await db.get(ConversationSession, session_id)
            if row is None:
                raise KeyError(f"unknown session_id={session_id}")
            merged = merge_patch(SessionState.model_validate(row.state or {}), patch)
            row.state = merged.model_dump(mode="json")
            row.turn_count = merged.turn_count
            await db.commit()
            return merged
