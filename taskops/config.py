"""
Configuration management for Restaurant Task Ops
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Restaurant Task Ops"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"        # DEBUG=true always logs at DEBUG

    # Database
    DATABASE_URL: str = "sqlite:///./taskops.db"

    # Reference timezone for day/week/month boundaries
    TIMEZONE: str = "Asia/Jerusalem"

    # Shared secret for the external cron trigger
    CRON_SECRET: str = ""

    # In-process schedulers (the external cron trigger is the primary mode)
    LIFECYCLE_SCHEDULER_ENABLED: bool = False
    LIFECYCLE_INTERVAL_MIN: int = 60
    PUSH_SCHEDULER_ENABLED: bool = False
    PUSH_CHECK_INTERVAL_SEC: int = 60

    # Lifecycle rules
    REMINDER_ELAPSED_FRACTION: float = 2 / 3
    REMINDER_THROTTLE_HOURS: int = 24
    RETENTION_GRACE_DAYS: int = 3
    WEEKLY_RECURRENCE_WEEKDAY: int = 6  # Monday=0 ... Sunday=6

    # Timeouts
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    TRANSPORT_TIMEOUT_SECONDS: float = 15.0

    # Email (SMTP)
    EMAIL_HOST: str = "smtp.gmail.com"
    EMAIL_PORT: int = 587
    EMAIL_SECURE: bool = False     # True for port 465 (implicit TLS)
    EMAIL_USER: str = ""
    EMAIL_PASSWORD: str = ""
    EMAIL_FROM: str = ""

    # Web Push (VAPID)
    VAPID_PUBLIC_KEY: str = ""
    VAPID_PRIVATE_KEY: str = ""
    VAPID_SUBJECT: str = ""        # mailto: address, falls back to EMAIL_FROM

    # Time-of-day push reminders
    MORNING_PUSH_HOUR: int = 9
    EVENING_PUSH_HOUR: int = 22
    PUSH_WINDOW_MINUTES: int = 5
    MORNING_PUSH_TITLE: str = "Good morning!"
    MORNING_PUSH_BODY: str = "Don't forget to get through today's tasks."
    EVENING_PUSH_TITLE: str = "Good night!"
    EVENING_PUSH_BODY: str = "Don't forget to verify the tasks you completed."

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
