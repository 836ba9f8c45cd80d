"""
Configuration management for the IPTV source layer.
Uses pydantic-settings for environment variable loading.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # API Configuration
    app_name: str = "IPTV Sources"
    app_version: str = "0.1.0"
    debug: bool = False
    
    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    
    # CORS Configuration
    cors_origins: list[str] = ["*"]
    
    # Rate Limiting
    rate_limit_per_minute: int = 100
    
    # Upstream requests
    request_timeout_seconds: float = 30.0
    validation_timeout_seconds: float = 15.0  # Shorter for quick feedback
    user_agent: str = "iptv-sources/0.1"
    
    # Playlist cache (per normalizer)
    playlist_cache_ttl_seconds: int = 300  # 5 minutes
    max_normalizers: int = 256  # Shared normalizers kept by the HTTP layer
    
    log_level: str = "INFO"
    
    # Pydantic V2 configuration
    model_config = SettingsConfigDict(env_prefix="IPTV_", env_file=".env")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
