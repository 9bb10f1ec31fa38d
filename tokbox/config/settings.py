import logging
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Explicitly load .env file ONLY (not .env.production)
env_loaded = load_dotenv(".env", override=False)
logging.info(f"🔧 Environment file loaded: {env_loaded} from .env")


class Settings(BaseSettings):
    """Application settings"""

    # App configuration
    app_name: str = "tok.box Analysis Backend"
    app_host: str = Field(default="0.0.0.0")
    app_port: int = Field(default=8001)  # frame-extraction service owns 8000
    app_env: str = Field(default="development")
    debug: bool = Field(default=False)

    # Database configuration
    database_url: str = Field(default="sqlite:///./tokbox.db")

    # AI Provider API Keys
    openai_api_key: Optional[str] = Field(default=None)
    anthropic_api_key: Optional[str] = Field(default=None)

    # Model tiers (premium until the plan's premium allowance is spent, then fast)
    premium_analysis_model: str = Field(default="claude-sonnet-4-20250514")
    fast_analysis_model: str = Field(default="claude-3-5-haiku-20241022")
    premium_caption_model: str = Field(default="gpt-4o-mini")
    fast_caption_model: str = Field(default="gpt-4o-mini")
    analysis_max_tokens: int = Field(default=2500)
    hook_max_tokens: int = Field(default=1500)
    caption_max_tokens: int = Field(default=200)

    # Frame-extraction microservice
    embedding_service_url: str = Field(default="http://localhost:8000")
    num_frames: int = Field(default=10)

    # Platform request ceiling; the only cancellation mechanism for a run
    request_timeout_seconds: float = Field(default=120.0)

    # Quota policy: let callers through when the usage query itself fails
    allow_on_check_failure: bool = Field(default=True)

    # CORS
    allowed_origins: str = Field(default="http://localhost:3000")

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # AWS S3 Configuration for video and frame storage
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    aws_region: str = Field(default="us-east-2")
    s3_bucket_name: str = Field(default="candyshop-1")
    s3_key_prefix: str = Field(default="tokbox")
    upload_url_expiration: int = Field(default=600)

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="allow", env_file_encoding="utf-8"
    )

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins as a list"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def model_for_tier(self, tier: str, purpose: str) -> str:
        """Resolve the model name for a tier ("premium" | "fast") and purpose ("analysis" | "caption")"""
        return getattr(self, f"{tier}_{purpose}_model")


# Global settings instance
settings = Settings()

logger = logging.getLogger(__name__)
logger.info(f"🔍 Settings: OPENAI_API_KEY present: {bool(settings.openai_api_key)}")
logger.info(f"🔍 Settings: ANTHROPIC_API_KEY present: {bool(settings.anthropic_api_key)}")


def get_settings() -> Settings:
    """Get settings instance (for dependency injection)"""
    return settings
