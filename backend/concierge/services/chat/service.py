from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

from concierge.core.logging import get_logger
from concierge.schemas.chat import ChatTurnRequest, ChatTurnResponse
from concierge.services.chat.engine import TurnEngine, TurnInput
from concierge.services.contracts import SessionStore

logger = get_logger(__name__)


class ChatTurnService:
    """Load session, run the engine, save the patch.

    Turns for the same (shop_id, session_key) are serialised; the engine reads
    then writes the same session record without optimistic concurrency. A
    session's lock lives only while some turn holds or waits on it.
    """

    def __init__(self, *, engine: TurnEngine, store: SessionStore):
        self.engine = engine
        self.store = store
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._holders: Dict[Tuple[str, str], int] = {}

    @asynccontextmanager
    async def _session_lock(self, shop_id: str, session_key: str) -> AsyncIterator[None]:
        key = (shop_id, session_key)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        # Counted before acquiring so a waiter keeps the lock registered.
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[key] - 1
            if remaining:
                self._holders[key] = remaining
            else:
                del self._holders[key]
                del self._locks[key]

    async def handle(self, request: ChatTurnRequest) -> ChatTurnResponse:
        async with self._session_lock(request.shop_id, request.session_key):
            session_id, state = await self.store.load(request.shop_id, request.session_key)
            result = await self.engine.run_turn(
                TurnInput(
                    shop_id=request.shop_id,
                    messages=list(request.messages),
                    state=state,
                    store=request.store,
                    result_limit=request.result_limit,
                )
            )
            await self.store.save(session_id, result.patch)

        logger.info(
            "turn shop=%s session=%s mode=%s decided_by=%s products=%d",
            request.shop_id,
            session_id,
            result.turn.metadata.mode.value,
            result.turn.metadata.decided_by,
            result.turn.metadata.product_count,
        )
        return ChatTurnResponse(session_id=session_id, turn=result.turn)
