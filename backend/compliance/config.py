"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Compliance Verification API"
    debug: bool = False
    environment: str = "development"  # "production" switches registry URLs

    # CORS - Allow all origins by default (restrict in production)
    cors_origins: list[str] = ["*"]

    # Admin routes require this key in X-API-Key (disabled when unset)
    admin_api_key: Optional[str] = None

    # Identity verification provider (OAuth2 password grant + journey API)
    identity_base_url: str = "https://eu.platform.go.gbgplc.com"
    identity_auth_url: str = "https://api.auth.gbgplc.com/as/token.oauth2"
    identity_client_id: str = ""
    identity_client_secret: str = ""
    identity_username: str = ""
    identity_password: str = ""
    identity_resource_id: str = (
        "d27b6807703eec9f5f5c0d45eb3abc883c142236055b85e30df2f75fdb22cbbe@1gobnzjz"
    )
    identity_token_refresh_buffer_seconds: int = 300  # Refresh 5 minutes before expiry
    identity_max_retries: int = 3
    identity_retry_base_delay_ms: int = 1000
    identity_timeout_seconds: float = 30.0
    upload_token_attempts: int = 3

    # Self-exclusion registry
    exclusion_api_url: Optional[str] = None  # Derived from environment when unset
    exclusion_batch_api_url: Optional[str] = None
    exclusion_api_key: str = ""
    exclusion_batch_size_limit: int = 1000  # Hard limit of the batch endpoint
    exclusion_rate_limit_delay_seconds: float = 1.0  # Between batch requests
    exclusion_timeout_seconds: float = 30.0

    # Remote config for the journey resource id (settings value when no URL)
    remote_config_url: Optional[str] = None
    remote_config_ttl_seconds: int = 300

    # Document upload limits
    max_document_size_mb: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def resolved_exclusion_api_url(self) -> str:
        if self.exclusion_api_url:
            return self.exclusion_api_url
        if self.is_production:
            return "https://api.gamstop.io/v2"
        return "https://api.stage.gamstop.io/v2"

    @property
    def resolved_exclusion_batch_api_url(self) -> str:
        if self.exclusion_batch_api_url:
            return self.exclusion_batch_api_url
        if self.is_production:
            return "https://batch.gamstop.io/v2"
        return "https://batch.stage.gamstop.io/v2"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
