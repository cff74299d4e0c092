from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional
from dotenv import load_dotenv

# Export .env into os.environ for SDKs that read it directly
# (Firebase emulator host, Google application default credentials).
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Platform Gateway"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # MongoDB Configuration
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "platform"

    # Development toggle: keep documents in process memory instead of MongoDB
    USE_IN_MEMORY_BACKENDS: bool = False

    # Firebase Configuration
    FIREBASE_CREDENTIALS_JSON: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None
    USE_FIREBASE_EMULATOR: bool = False
    FIREBASE_AUTH_EMULATOR_HOST: str = "localhost:9099"

    # Gemini Configuration
    AI_API_KEY: Optional[str] = None
    AI_MODEL_NAME: str = "gemini-1.5-flash-latest"

    # OpenAI Configuration (Assistants + Whisper)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_ASSISTANT_ID: Optional[str] = None
    TRANSCRIPTION_MODEL: str = "whisper-1"
    ASSISTANT_POLL_INTERVAL_SECONDS: float = 1.0
    ASSISTANT_POLL_MAX_INTERVAL_SECONDS: float = 8.0
    ASSISTANT_RUN_TIMEOUT_SECONDS: float = 120.0

    # Stripe Configuration
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_SUBSCRIPTION_PRICE_ID: Optional[str] = None
    STRIPE_TRIAL_PERIOD_DAYS: int = 0
    STRIPE_PORTAL_CONFIGURATION_ID: Optional[str] = None

    # Startup hooks
    INITIALIZE_APP_STATS: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra env variables


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
