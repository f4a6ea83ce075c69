"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    LOG_LEVEL: str = "warning"  # Options: debug, info, warning, error, critical
    QUIT_COMMAND: str = "quit"

    # LLM Configuration
    PLANNER: str = "openai"
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT: float = 300.0  # seconds
    ENABLE_THINKING: bool = False

    # Tool server Configuration
    SERVER_TIMEOUT: float = 300.0  # seconds, covers spawn + handshake
    PYTHON_COMMAND: str = "python"
    NODE_COMMAND: str = "node"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
