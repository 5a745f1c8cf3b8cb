from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite+aiosqlite:///./core_portal.db"
    TESTING: bool = False
    ENV: str = "dev"  # "dev" or "prod"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    SUPER_ADMIN_EMAIL: str | None = None
    SUPER_ADMIN_PASSWORD: str | None = None
    SUPER_ADMIN_NAME: str | None = "Super Admin"

    # --- EMAIL ---
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAILS_FROM_EMAIL: str = "no-reply@core.app"
    EMAILS_FROM_NAME: str = "CORE"
    FRONTEND_URL: str = "http://localhost:3000"

    # --- ZOHO MEETING ---
    ZOHO_CLIENT_ID: str | None = None
    ZOHO_CLIENT_SECRET: str | None = None
    ZOHO_REFRESH_TOKEN: str | None = None
    ZOHO_DOMAIN: str = "in"  # accounts.zoho.<domain>
    ZOHO_TIMEZONE: str = "Asia/Kolkata"
    ZOHO_TOKEN_BUFFER_SECONDS: int = 120

    # --- STORAGE ---
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    SUPABASE_BUCKET: str = "student-documents"
    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_SIZE_MB: int = 10

    # --- RATE LIMITING ---
    REDIS_URL: str | None = None
    ENQUIRY_RATE_LIMIT: str = "10/minute"
    LOGIN_RATE_LIMIT: str = "20/minute"

    @property
    def zoho_configured(self) -> bool:
        return bool(self.ZOHO_CLIENT_ID and self.ZOHO_CLIENT_SECRET and self.ZOHO_REFRESH_TOKEN)


settings = Settings()
