"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""
    
    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Preset Studio"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    
    # ==========================================================================
    # Source Acquisition
    # ==========================================================================
    # Hard bound on the whole remote fetch, not per socket operation
    FETCH_TIMEOUT_SECONDS: float = 30.0
    
    # ==========================================================================
    # Background Removal (rembg)
    # ==========================================================================
    REMBG_MODEL: str = "u2net"
    
    # ==========================================================================
    # Output Settings
    # ==========================================================================
    TEMP_FILE_PREFIX: str = "temp"
    
    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
