from pydantic import BaseModel, Field
from typing import Literal, Optional, List
from datetime import datetime

from concierge.schemas.turn import ChatTurn


class Message(BaseModel):
    id: str
    role: Literal["user", "assistant"]
    text: str
    created_at: Optional[datetime] = None


class StoreCategory(BaseModel):
    name: str
    product_count: int = 0


class StoreContext(BaseModel):
    primary_category: Optional[str] = None
    store_type: Optional[str] = None
    categories: List[StoreCategory] = []
    top_brands: List[str] = []


class ChatTurnRequest(BaseModel):
    shop_id: str = Field(..., description="Store identifier")
    session_key: str = Field(..., description="Client-side session key (e.g. guest_123)")
    messages: List[Message] = Field(..., min_length=1, description="Conversation history, newest last")
    store: StoreContext = Field(default_factory=StoreContext)
    result_limit: Optional[int] = Field(default=None, ge=1, le=50)


class ChatTurnResponse(BaseModel):
    session_id: str
    turn: ChatTurn
