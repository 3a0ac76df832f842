"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./clinic_automation.db"

    # Admin endpoints (X-Internal-Secret header)
    INTERNAL_SECRET: str = ""

    # Meta messaging (WhatsApp Cloud API, Messenger, Instagram)
    META_API_VERSION: str = "v21.0"
    WHATSAPP_PHONE_NUMBER_ID: str = ""
    WHATSAPP_ACCESS_TOKEN: str = ""
    META_PAGE_ACCESS_TOKEN: str = ""  # Messenger send API
    INSTAGRAM_ACCESS_TOKEN: str = ""  # Falls back to META_PAGE_ACCESS_TOKEN if empty
    MESSAGING_DRY_RUN: bool = True  # Log outbound messages instead of sending
    MESSAGING_TIMEOUT_SECONDS: float = 10.0
    DEFAULT_MESSAGING_CHANNEL: str = "whatsapp"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "America/Mexico_City"
    SCHEDULER_POLL_INTERVAL_SECONDS: int = 10
    SCHEDULER_RESTART_SETTLE_SECONDS: float = 2.0

    # Job schedules (5-field cron, evaluated in SCHEDULER_TIMEZONE)
    AUTOMATION_RULES_CRON: str = "*/1 * * * *"
    NOSHOW_PROTOCOL_CRON: str = "0 0 * * *"
    NOSHOW_DEADLINE_ALERTS_CRON: str = "0 */6 * * *"
    RECOVERY_CAMPAIGN_CRON: str = "0 9 * * *"
    MARK_NO_SHOWS_CRON: str = "0 * * * *"
    APPOINTMENT_REMINDERS_CRON: str = "*/5 * * * *"
    DISABLED_JOBS: str = ""  # Comma-separated job names to skip at registration

    # Recovery / appointment automation
    RECOVERY_DAILY_LIMIT: int = 50
    NO_SHOW_GRACE_MINUTES: int = 60
    REMINDER_LOOKAHEAD_HOURS: int = 24

    # Seed the default rule set when the rules table is empty
    SEED_DEFAULT_RULES: bool = False

    @property
    def disabled_jobs_list(self) -> list[str]:
        """Parse DISABLED_JOBS into a list."""
        return [j.strip() for j in self.DISABLED_JOBS.split(",") if j.strip()]

    @property
    def instagram_token(self) -> str:
        return self.INSTAGRAM_ACCESS_TOKEN or self.META_PAGE_ACCESS_TOKEN


settings = Settings()
