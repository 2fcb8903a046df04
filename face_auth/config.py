"""Configuration management for the facial authentication service."""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Ignore extra environment variables
    )

    # Server configuration
    port: int = 8000
    host: str = "0.0.0.0"

    # Supabase configuration
    supabase_url: str
    supabase_anon_key: str

    # Session configuration
    session_timeout_hours: int = 24

    # Face matching settings
    similarity_threshold: float = 0.85
    min_confidence_threshold: float = 0.85
    cosine_weight: float = 0.6
    euclidean_weight: float = 0.3
    pearson_weight: float = 0.1

    # Enrollment settings
    min_enrollment_samples: int = 2
    max_enrollment_samples: int = 10

    # Rate limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    # Number of reverse proxies in front of the service; 0 ignores X-Forwarded-For
    trusted_proxy_count: int = 0

    # Observability
    otlp_endpoint: Optional[str] = None
    enable_console_export: bool = False

    # Logging configuration
    log_level: str = "INFO"

    @field_validator('supabase_url')
    @classmethod
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL environment variable is required')
        return v

    @field_validator('supabase_anon_key')
    @classmethod
    def validate_supabase_anon_key(cls, v):
        if not v:
            raise ValueError('SUPABASE_ANON_KEY environment variable is required')
        return v

    @field_validator('similarity_threshold', 'min_confidence_threshold')
    @classmethod
    def validate_threshold(cls, v, info):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f'{info.field_name.upper()} must be between 0.0 and 1.0')
        return v

    @field_validator('min_enrollment_samples')
    @classmethod
    def validate_min_enrollment_samples(cls, v):
        if v < 2:
            raise ValueError('MIN_ENROLLMENT_SAMPLES must be at least 2')
        return v

    @field_validator('session_timeout_hours')
    @classmethod
    def validate_session_timeout(cls, v):
        if v <= 0:
            raise ValueError('SESSION_TIMEOUT_HOURS must be positive')
        return v


# Global settings instance
settings = Settings()
