"""Configuration management for the census intake service."""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

from census_intake.utils.scoring_config import ScoringConfig, load_scoring_config

# Load environment variables from .env file in ops folder
env_path = Path(__file__).parent.parent / "ops" / ".env"
load_dotenv(dotenv_path=env_path)


class ConversationConfig(BaseSettings):
    """Conversation session configuration."""

    session_idle_timeout_seconds: float = Field(
        default=3600.0, alias="SESSION_IDLE_TIMEOUT_SECONDS"
    )
    format_confirmation_threshold: float = Field(
        default=0.85, alias="FORMAT_CONFIRMATION_THRESHOLD"
    )
    require_final_confirmation: bool = Field(
        default=False, alias="REQUIRE_FINAL_CONFIRMATION"
    )
    max_question_options: int = Field(default=8, alias="MAX_QUESTION_OPTIONS")
    max_sample_rows: int = Field(default=5, alias="MAX_QUESTION_SAMPLE_ROWS")

    class Config:
        env_file = "ops/.env"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    # Application settings
    app_name: str = Field(default="census-intake", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Extraction
    text_window_bytes: int = Field(default=1024, alias="TEXT_WINDOW_BYTES")
    low_fidelity_ceiling: float = Field(default=0.7, alias="LOW_FIDELITY_CEILING")
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Heuristic tuning files (defaults are built in)
    scoring_config_path: Optional[Path] = Field(default=None, alias="SCORING_CONFIG_PATH")
    field_catalogue_path: Optional[Path] = Field(default=None, alias="FIELD_CATALOGUE_PATH")

    # Processed files kept for session start
    processed_file_cache_size: int = Field(default=100, alias="PROCESSED_FILE_CACHE_SIZE")

    conversation: ConversationConfig = Field(default_factory=ConversationConfig)

    # CORS configuration
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")

    class Config:
        env_file = "ops/.env"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True

    def scoring(self) -> ScoringConfig:
        """Scoring weights, with overrides from SCORING_CONFIG_PATH when set."""
        return load_scoring_config(self.scoring_config_path)


# Global configuration instance
config = AppConfig()


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    return config


def reload_config() -> AppConfig:
    """Reload configuration from environment variables."""
    global config
    config = AppConfig()
    return config
