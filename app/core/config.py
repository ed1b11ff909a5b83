from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from backend project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Scheduling rules
    default_slot_duration_minutes: int = 30
    # Used when a provider has no DayAvailability record for the weekday
    default_work_start: str = "09:00"
    default_work_end: str = "17:00"
    # Comma-separated specializations allowed to take video appointments
    video_call_specializations: str = "PSYCHIATRY"

    # 24h reminder sweep
    reminder_scanner_enabled: bool = True
    reminder_interval_hours: int = 12
    reminder_window_start_hours: int = 24
    reminder_window_end_hours: int = 36
    # Also remind confirmed appointments closer than the window start that were never reminded
    reminder_catch_up_missed: bool = True
    notification_send_timeout_seconds: float = 10.0

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "MediConnect"
    site_name: str = "MediConnect"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def video_call_specializations_set(self) -> set[str]:
        return {s.strip().upper() for s in self.video_call_specializations.split(",") if s.strip()}

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()
