from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Concierge Dialogue Engine"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str = "sqlite+aiosqlite:///./concierge.db"
    DATABASE_ECHO: bool = False

    # CORS
    ALLOWED_ORIGINS: str = "*"
    ENVIRONMENT: str = "development"

    # OpenAI (embeddings only; never used for routing decisions)
    OPENAI_API_KEY: Optional[str] = None
    EMBEDDING_MODEL: str = "text-embedding-3-small"

    # Retrieval collaborator
    RETRIEVAL_BASE_URL: str = Field(
        default="http://localhost:8100",
        validation_alias=AliasChoices("RETRIEVAL_BASE_URL", "SEARCH_BASE_URL"),
    )
    RETRIEVAL_TIMEOUT_SECONDS: float = 8.0
    RETRIEVAL_RESULT_LIMIT: int = 17

    # Fact sheet enrichment (best-effort)
    TOOLS_BASE_URL: Optional[str] = None
    ENRICHMENT_TIMEOUT_SECONDS: float = 1.5
    FACT_SHEET_CACHE_TTL_SECONDS: int = 600

    # Routing policy overrides (None keeps the built-in constant)
    ROUTING_SMALL_SET_CAP: Optional[int] = None
    ROUTING_ALWAYS_CLARIFY_ABOVE: Optional[int] = None
    ROUTING_GROUNDABILITY_THRESHOLD: Optional[float] = None
    ROUTING_ENTROPY_MIN: Optional[float] = None
    RELAXATION_MAX_STEPS: int = 4

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    DEBUG_LOG_FILE: str = "debug.log"
    DEBUG_LOG_ENABLED: bool = True

    # Load backend-local .env regardless of current working directory.
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        case_sensitive=True,
        extra="ignore",
    )

settings = Settings()
