from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Portal credential — a bare token or the full portal view URL
    portal_token: str = ""

    # Billing provider API
    portal_base_url: str = "https://portal.withorb.com/api/v1"
    portal_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36"
    )
    portal_timeout: float = 30.0

    # Timestamps are rendered at this fixed offset (UTC+8)
    display_utc_offset_hours: int = 8

    # Allowance used when no allocation can be resolved
    default_credit_allowance: int = 4000
    default_message_allowance: int = 50

    # Credit-pool remaining below this flags the status indicator
    alert_threshold: int = 4000

    # Periodic refresh
    enable_auto_refresh: bool = True
    refresh_interval: int = 300  # seconds, clamped to >= 5

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"


settings = Settings()
