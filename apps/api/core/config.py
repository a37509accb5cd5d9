"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""
    
    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )
    
    # Relay authentication
    # Shared bearer key for every /garmin and /debug route. Unset = every request is rejected.
    API_KEY: Optional[str] = Field(default=None)
    
    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=3000)
    API_RELOAD: bool = Field(default=False)
    SERVER_TIMEOUT_S: int = Field(default=25)
    
    # Garmin Connect call budgets (seconds)
    GARMIN_LOGIN_TIMEOUT_S: float = Field(default=15.0, gt=0)
    GARMIN_API_TIMEOUT_S: float = Field(default=10.0, gt=0)
    
    # Password login cooldown per username
    PASSWORD_LOGIN_COOLDOWN_S: int = Field(default=600, ge=0)  # 10 minutes
    
    # Redis Configuration (login cooldowns; falls back to in-process memory)
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    
    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text
    
    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)
    
    # Sentry Error Tracking
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.1)  # 10% of transactions
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.1)


# Global settings instance
settings = Settings()
