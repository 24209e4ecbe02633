from concierge.api.routes.chat import router as chat
from concierge.api.routes.health import router as health

__all__ = ["chat", "health"]
