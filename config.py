"""
Configuration module for the task board reminder service.
Loads environment variables and provides typed configuration.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Telegram Bot
    bot_token: str
    bot_username: str = ""  # Used for t.me/<bot>?startapp=... links

    # Storage
    storage_backend: str = "supabase"  # supabase, memory
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Table names
    reminders_table: str = "reminders"
    users_table: str = "users"
    notification_settings_table: str = "notification_settings"

    # Reminder delivery
    retain_sent_reminders: bool = False  # Keep rows with sent_at set instead of deleting
    require_write_access: bool = True  # Only DM users who granted write access
    notifier_timeout_seconds: int = 15
    snooze_minutes: int = 10
    tries_update_attempts: int = 3

    # Bot Settings
    timezone: str = "Europe/Moscow"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "development"  # development, staging, production

    # Webhook Configuration
    bot_webhook_url: Optional[str] = (
        None  # Full webhook URL for bot (e.g., https://yourdomain.com/webhook/telegram)
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def uses_supabase(self) -> bool:
        return self.storage_backend.lower() == "supabase"

    def validate_all_required(self) -> None:
        """
        Validate that all required settings are present.

        Raises:
            ValueError: If required fields are missing or invalid
        """
        required_fields = ["bot_token"]
        if self.uses_supabase:
            required_fields += ["supabase_url", "supabase_key"]

        missing = []
        for field in required_fields:
            value = getattr(self, field, None)

            if not value:
                missing.append(field)
                continue

            # Check for placeholder values
            if str(value).lower().startswith("your_"):
                missing.append(field)

        if self.storage_backend.lower() not in ("supabase", "memory"):
            missing.append("storage_backend")

        if self.notifier_timeout_seconds <= 0:
            missing.append("notifier_timeout_seconds")

        if missing:
            raise ValueError(
                f"Missing or invalid required configuration: "
                f"{', '.join(missing)}. "
                f"Please check your .env file and ensure all required "
                f"values are set."
            )


# Global settings instance
settings = Settings()
