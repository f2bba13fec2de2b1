"""
Process configuration, read from the environment (and a local .env file).
"""
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    redis_url: str = "redis://localhost:6379/0"
    bank_api_url: str = "http://localhost:8081"
    market_api_url: str = "http://localhost:8082"
    sim_time_endpoint: Optional[str] = None
    sync_interval_ms: int = 30_000
    real_minutes_per_sim_day: float = 2.0
    http_timeout_s: float = 10.0
    notification_url: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "Settings":
        """
        Env vars (REDIS_URL, SIM_TIME_ENDPOINT, ...) override `env_file`,
        which overrides the defaults. Empty vars are ignored.
        """
        return cls(_env_file=env_file)
