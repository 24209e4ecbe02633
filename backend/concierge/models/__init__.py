from .conversation_session import ConversationSession
