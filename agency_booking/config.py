# agency_booking/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== App =====
    APP_NAME: str = "agency_booking"
    ENV: str = "dev"
    # Local time zone of the agency; slot labels are wall-clock times here
    TIMEZONE: str = "America/New_York"

    # ===== DB =====
    # Production points DATABASE_URL at Postgres. Local runs fall back to SQLite.
    DATABASE_URL: str = "sqlite:///./agency.db"

    DB_POOL_SIZE: int = 2
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 min

    # ===== Booking policy =====
    MEETING_DURATION_MIN: int = 60
    # When a requested time matches no slot of that day, only check for conflicts
    ALLOW_OFF_SCHEDULE_BOOKINGS: bool = False

    # ===== Zoom (Server-to-Server OAuth) =====
    ZOOM_ACCOUNT_ID: Optional[str] = None
    ZOOM_CLIENT_ID: Optional[str] = None
    ZOOM_CLIENT_SECRET: Optional[str] = None
    ZOOM_USER_EMAIL: Optional[str] = None
    ZOOM_API_BASE: str = "https://api.zoom.us/v2"
    ZOOM_OAUTH_URL: str = "https://zoom.us/oauth/token"
    ZOOM_TIMEOUT_SECONDS: float = 10.0

    # ===== Email (Resend) =====
    # Without an API key the notifier only logs what it would send
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "onboarding@resend.dev"
    COMPANY_EMAIL: str = "hello@example.com"
    COMPANY_NAME: str = "JDX Web Solutions"
    SITE_URL: str = "http://localhost:3000"
    OFFICE_ADDRESS: str = "123 Business St, City, State 12345"

    # ===== Google Calendar mirror (Service Account, optional) =====
    GCAL_CALENDAR_ID: str = "primary"
    # Either inline JSON (single line) or a path to a .json file
    GCAL_SA_JSON: Optional[str] = None
    GCAL_IMPERSONATE_EMAIL: Optional[str] = None

    # Compat with GOOGLE_* variables
    GOOGLE_CALENDAR_ID: Optional[str] = None
    GOOGLE_CREDENTIALS_FILE: Optional[str] = None
    GOOGLE_CREDENTIALS_JSON: Optional[str] = None

    # ===== Admin =====
    ADMIN_TOKEN: Optional[str] = None

    # ===== Notification dispatcher =====
    NOTIFY_WORKERS: int = 4

    def model_post_init(self, __context) -> None:
        """
        Backfill GOOGLE_* -> GCAL_*.
        Credentials priority: inline JSON in env > file path.
        """
        if (not self.GCAL_CALENDAR_ID or self.GCAL_CALENDAR_ID == "primary") and self.GOOGLE_CALENDAR_ID:
            self.GCAL_CALENDAR_ID = self.GOOGLE_CALENDAR_ID

        if not self.GCAL_SA_JSON:
            if self.GOOGLE_CREDENTIALS_JSON:
                self.GCAL_SA_JSON = self.GOOGLE_CREDENTIALS_JSON.strip()
            elif self.GOOGLE_CREDENTIALS_FILE:
                self.GCAL_SA_JSON = str(Path(self.GOOGLE_CREDENTIALS_FILE))

    @property
    def zoom_configured(self) -> bool:
        return bool(self.ZOOM_ACCOUNT_ID and self.ZOOM_CLIENT_ID and self.ZOOM_CLIENT_SECRET)

    @property
    def calendar_configured(self) -> bool:
        return bool(self.GCAL_SA_JSON)


settings = Settings()
