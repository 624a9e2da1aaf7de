"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    TRANSPORT: str = "openai"  # Options: openai, anthropic
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    MAX_TOKENS: int = 1024
    SYSTEM_PROMPT: str = (
        "You are a helpful chatbot communicating hotel information "
        "(rooms, reservations, hotel surroundings...)."
    )

    # Retrieval Configuration
    VECTOR_DB_HOST: str = "chroma"  # Service name in docker-compose
    VECTOR_DB_PORT: int = 8000
    COLLECTION_NAME: str = "rag-chat-hotels"
    EMBED_MODEL: str = "all-MiniLM-L6-v2"  # small; runs CPU-only
    SOURCES_PATH: str = "./__SOURCES__/sources.json"
    RETRIEVAL_K: int = 1
    RETRIEVAL_MIN_SCORE: float | None = None

    # Record store / notification collaborators
    MONGO_URI: str | None = None  # None => in-memory booking store
    MONGO_DB: str = "hotels"
    BOOKING_COLLECTION: str = "bookingStatus"
    RECEPTION_WEBHOOK_URL: str | None = None  # None => log-only notifier

    # Orchestration
    TOOL_WORKERS: int = 4
    STRICT_TOOL_LOOP: bool = False

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
