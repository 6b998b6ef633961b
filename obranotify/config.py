"""Runtime configuration, env-driven.

Reads from a .env file and OBRANOTIFY_* environment variables through
pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from obranotify.channels.email import RESEND_API_BASE


class NotifyConfig(BaseSettings):
    """Engine configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export OBRANOTIFY_LOG_LEVEL=DEBUG
        export OBRANOTIFY_DATABASE_PATH=/data/notify.db
        export OBRANOTIFY_RESEND_API_KEY=re_...
        export OBRANOTIFY_RESEND_FROM_EMAIL=avisos@example.com

    Or via .env file::

        OBRANOTIFY_ENVIRONMENT=production
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OBRANOTIFY_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"

    # Storage (runs, journal, notifications, executions, directory)
    database_path: Path = Path(".obranotify/notify.db")

    # Email transport
    resend_api_key: str = ""
    resend_from_email: str = ""
    resend_api_base: str = RESEND_API_BASE
    email_timeout_seconds: float = 10.0

    # Delivery
    worker_poll_interval_seconds: float = 5.0
    default_follow_up_minutes: int = 2
    inline_delivery: bool = True
    run_lease_seconds: float = 300.0

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton: import as `from obranotify.config import config`
config = NotifyConfig()
