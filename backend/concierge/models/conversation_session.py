from sqlalchemy import Column, String, DateTime, Integer, JSON, UniqueConstraint
from sqlalchemy.sql import func

from concierge.db.base import Base


class ConversationSession(Base):
    __tablename__ = "conversation_sessions"
    __table_args__ = (UniqueConstraint("shop_id", "session_key", name="uq_conversation_sessions_shop_key"),)

    id = Column(String(64), primary_key=True)
    shop_id = Column(String(128), nullable=False, index=True)
    session_key = Column(String(255), nullable=False)

    state = Column(JSON, nullable=False, default=dict)  # serialized SessionState
    turn_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
