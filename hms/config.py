from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Hospital Management SaaS"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    app_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"

    # Database settings
    database_url: str

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Tenancy
    tenant_header: str = "X-Tenant-ID"
    app_domain: str = "localhost"
    trial_days: int = 14
    subscription_period_days: int = 30

    # Account tokens
    password_reset_expire_hours: int = 1

    # SMTP settings (email is skipped when smtp_host is empty)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "no-reply@hospital.local"

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


settings = Settings()
