from fastapi import APIRouter, Depends

from concierge.api.deps import get_chat_service
from concierge.core.exceptions import (
    EmbeddingError,
    RetrievalError,
    RetrievalUnavailableException,
    TurnProcessingException,
)
from concierge.core.logging import get_logger
from concierge.schemas.chat import ChatTurnRequest, ChatTurnResponse
from concierge.services.chat.service import ChatTurnService

router = APIRouter()
logger = get_logger(__name__)

@router.post("/turn", response_model=ChatTurnResponse)
async def chat_turn(
    request: ChatTurnRequest,
    service: ChatTurnService = Depends(get_chat_service),
):
    """
    Run one dialogue turn.

    Decides the conversation mode (chat, clarify, recommend, compare or
    dead end), assembles the turn and persists the session patch.
    """
    try:
        return await service.handle(request)
    except (RetrievalError, EmbeddingError) as e:
        logger.error(f"Retrieval failed for shop={request.shop_id}: {e}")
        raise RetrievalUnavailableException()
    except Exception as e:
        logger.exception(f"Chat turn error: {e}")
        raise TurnProcessingException()
