# src/fanstream_backend/core/config.py

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_SUPABASE_URL = "https://placeholder-project.supabase.co"
PLACEHOLDER_SUPABASE_KEY = "placeholder-key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # HTTP surface
    host: str = Field("0.0.0.0")
    port: int = Field(8000)
    debug: bool = Field(False)
    log_level: str = Field("INFO")
    rate_limit_enabled: bool = Field(True)
    rate_limit_rpm: int = Field(120)

    # Hosted backend (Supabase PostgREST)
    supabase_url: str = Field(PLACEHOLDER_SUPABASE_URL)
    supabase_anon_key: str = Field(PLACEHOLDER_SUPABASE_KEY)
    supabase_timeout: float = Field(10.0)
    supabase_read_attempts: int = Field(3, ge=1)

    # Redis: local copies of remote reads + response cache
    redis_url: str = Field("redis://localhost:6379/0")
    redis_max_connections: int = Field(50)
    cache_ttl: int = Field(60)
    local_cache_prefix: str = Field("fanstream:local:")
    local_cache_ttl: int = Field(7 * 24 * 3600)

    # Player
    player_status_interval_ms: int = Field(500, ge=50)
    vlc_args: Optional[str] = Field(None)

    def supabase_configured(self) -> bool:
        return (
            self.supabase_url != PLACEHOLDER_SUPABASE_URL
            and self.supabase_anon_key != PLACEHOLDER_SUPABASE_KEY
        )


settings = Settings()
