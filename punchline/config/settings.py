from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

# Load .env file from project root
load_dotenv()


class Settings(BaseSettings):
    """Base settings for the caption engine."""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Punchline Caption Engine"
    APP_VERSION: str = "1.0.0"

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = Field(default=False, description="Also write rotating log files under LOG_DIR when configure_logging() runs")

    # Batch shape
    SHUFFLE_BUCKETS: bool = Field(default=False, description="Shuffle the length bucket table between batches")
    RANDOM_SEED: Optional[int] = Field(default=None, description="Seed for rotation randomness (None = system entropy)")

    # Hard tag coverage
    HARD_TAG_MIN_LINES: int = Field(default=3, description="Minimum lines that must carry every hard tag")

    # Scoring
    RETRY_SCORE_THRESHOLD: int = 75
    MAX_ISSUE_CATEGORIES: int = 2

    # Rotation registries
    ENTITY_COOLDOWN_BATCHES: int = Field(default=3, description="Batches an entity stays ineligible after use")
    ENTITY_MAX_PER_BATCH: int = 1
    VOICE_HISTORY_SIZE: int = Field(default=4, description="Recent voice ids excluded from the next batch")

    # Cross-batch duplicate history
    DUPLICATE_HISTORY_SIZE: int = Field(default=200, description="Recent lines remembered per session for repeat detection")
    DUPLICATE_THRESHOLD: float = Field(default=0.85, description="Word-set Jaccard similarity above which a line repeats history")

    # Session store
    SESSION_TTL_MINUTES: int = 60
    MAX_SESSIONS: int = 10000


settings = Settings()
