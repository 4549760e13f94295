"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ───────────────────────────────────────────────
#
# pydantic-settings reads configuration from TWO sources (in priority order):
#
#   1. **Environment variables**, e.g. CYCLE_INTERVAL=3600
#   2. **.env file**: key=value lines in the project root .env file
#
# Field name `queue_delay` maps to env var `QUEUE_DELAY`.
#
# All durations are in seconds.  The defaults are the production pacing:
# one full sweep per day, 30 seconds between background fetches, and a
# half-second deadline on every store call.
# ──────────────────────────────────────────────────────────────────────
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """actPulse application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Store ===
    store_backend: Literal["sqlite", "memory"] = "sqlite"
    store_path: str = "data/acts.db"
    store_timeout: float = Field(default=0.5, gt=0)  # deadline for every store call

    # === Cache policy ===
    stale_after_hours: float = Field(default=24.0, gt=0)
    unrequested_update_threshold: int = Field(default=14, ge=1)

    # === Background pacing ===
    cycle_interval: float = Field(default=24 * 60 * 60, gt=0)  # one full sweep
    retry_delay: float = Field(default=60.0, ge=0)             # after a failed id listing
    queue_delay: float = Field(default=30.0, ge=0)             # between background fetches
    updater_enabled: bool = True

    # === Upstream providers ===
    musicbrainz_base_url: str = "https://musicbrainz.org/ws/2"
    musicbrainz_app_name: str = "actPulse"
    musicbrainz_app_version: str = "0.1.0"
    musicbrainz_contact: str = ""
    http_timeout: float = Field(default=10.0, gt=0)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def user_agent(self) -> str:
        """User-Agent string identifying this application to upstream providers."""
        agent = f"{self.musicbrainz_app_name}/{self.musicbrainz_app_version}"
        if self.musicbrainz_contact:
            agent = f"{agent} ( {self.musicbrainz_contact} )"
        return agent
