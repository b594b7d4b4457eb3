from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    database_url: str = "sqlite:///./tableside.db"
    redis_url: str = "redis://localhost:6379/0"
    topic_backend: str = "memory"  # "memory" or "redis"
    redis_channel_prefix: str = "tableside:"
    heartbeat_interval_seconds: float = 15.0
    reconnect_base_delay_ms: int = 1000
    reconnect_max_delay_ms: int = 30000
    reconnect_reset_on_success: bool = False
    stripe_secret_key: Optional[str] = None
    stripe_api_base: str = "https://api.stripe.com/v1"
    public_base_url: str = "http://localhost:8000"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    class Config:
        env_file = ".env"

settings = Settings()
