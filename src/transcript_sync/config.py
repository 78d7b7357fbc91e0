"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.transcript_sync.core.errors import ConfigurationError


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class DeliveryTargetKind(str, Enum):
    """Closed set of delivery backends; exactly one is active per process."""

    google_drive = "google_drive"
    synced_folder = "synced_folder"
    local = "local"
    dropbox = "dropbox"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Monitoring
    SENTRY_DSN: str = ""

    # Fireflies (upstream transcript source)
    FIREFLIES_API_KEY: str = ""
    FIREFLIES_API_URL: str = "https://api.fireflies.ai/graphql"
    FIREFLIES_TIMEOUT: float = 30.0

    # Scan windows
    LOOKBACK_HOURS: float = 24  # default for `transcript-sync run`
    POLL_CRON: str = "0 * * * *"
    POLL_LOOKBACK_HOURS: float = 2  # wider than the poll period on purpose
    CATCHUP_CRON: str = "0 9 * * *"
    CATCHUP_LOOKBACK_HOURS: float = 25

    # Pipeline pacing
    INTER_ITEM_DELAY_SECONDS: float = 2.0

    # Webhook intake
    WEBHOOK_SECRET: str = ""
    WEBHOOK_SETTLE_DELAY_SECONDS: float = 5.0
    WEBHOOK_PORT: int = 3000

    # Process lifecycle
    ENABLE_SCHEDULER: bool = False  # run poll/daily timers inside `serve`
    SHUTDOWN_GRACE_SECONDS: float = 30.0

    # Delivery target selection
    DELIVERY_TARGET: DeliveryTargetKind = DeliveryTargetKind.synced_folder

    # Google Drive API (cloud target)
    GOOGLE_SERVICE_ACCOUNT_FILE: str = ""  # Path to service account JSON key file
    GOOGLE_SERVICE_ACCOUNT_JSON_B64: str = ""  # Base64 JSON for containerized deployments
    GOOGLE_DRIVE_FOLDER_ID: str = ""

    # Locally-synced Google Drive folder
    GOOGLE_DRIVE_LOCAL_PATH: str = ""  # Empty = auto-detect under $HOME
    GOOGLE_DRIVE_TARGET_FOLDER: str = "Customer Call Transcripts"

    # Plain local storage
    LOCAL_STORAGE_PATH: str = "transcripts"

    # Dropbox
    DROPBOX_ACCESS_TOKEN: str = ""
    DROPBOX_FOLDER_PATH: str = "/Fireflies Transcripts"

    def get_service_account_path(self) -> str | None:
        """Return path to Google service account JSON file.

        Prefers GOOGLE_SERVICE_ACCOUNT_FILE (direct path) if set.
        Falls back to decoding GOOGLE_SERVICE_ACCOUNT_JSON_B64 into a temp file
        for containerized deployments where mounting a file is impractical.
        Returns None if neither is configured.
        """
        if self.GOOGLE_SERVICE_ACCOUNT_FILE:
            return self.GOOGLE_SERVICE_ACCOUNT_FILE
        if self.GOOGLE_SERVICE_ACCOUNT_JSON_B64:
            import base64
            import os
            import tempfile

            decoded = base64.b64decode(self.GOOGLE_SERVICE_ACCOUNT_JSON_B64)
            tmp_path = os.path.join(tempfile.gettempdir(), "gcp-service-account.json")
            with open(tmp_path, "wb") as f:
                f.write(decoded)
            return tmp_path
        return None

    def validate_for_startup(self) -> None:
        """Check that everything the selected deployment needs is present.

        Raises:
            ConfigurationError: listing every problem found, so an operator
                can fix them in one pass.
        """
        from apscheduler.triggers.cron import CronTrigger

        problems: list[str] = []

        if not self.FIREFLIES_API_KEY:
            problems.append("FIREFLIES_API_KEY is required")

        for key in ("LOOKBACK_HOURS", "POLL_LOOKBACK_HOURS", "CATCHUP_LOOKBACK_HOURS"):
            if getattr(self, key) <= 0:
                problems.append(f"{key} must be positive")

        for key in ("POLL_CRON", "CATCHUP_CRON"):
            try:
                CronTrigger.from_crontab(getattr(self, key))
            except ValueError as exc:
                problems.append(f"{key} is not a valid cron expression: {exc}")

        if self.DELIVERY_TARGET == DeliveryTargetKind.google_drive:
            if not (self.GOOGLE_SERVICE_ACCOUNT_FILE or self.GOOGLE_SERVICE_ACCOUNT_JSON_B64):
                problems.append(
                    "GOOGLE_SERVICE_ACCOUNT_FILE or GOOGLE_SERVICE_ACCOUNT_JSON_B64 "
                    "is required for the google_drive target"
                )
        elif self.DELIVERY_TARGET == DeliveryTargetKind.dropbox:
            if not self.DROPBOX_ACCESS_TOKEN:
                problems.append("DROPBOX_ACCESS_TOKEN is required for the dropbox target")

        if problems:
            raise ConfigurationError(problems)


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
