"""All settings, loaded from the .env file."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_url: str = "http://localhost:8000"
    app_env: str = "development"
    secret_key: str = "change-me"
    database_url: str = "sqlite:///./po_manager.db"

    # Email delivery (Brevo transactional API)
    brevo_api_key: str = ""
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    email_from_address: str = "noreply@yourdomain.com"
    email_from_name: str = "Purchase Order System"
    email_cc_sender: bool = True
    email_timeout_seconds: float = 30

    # WhatsApp deep links
    whatsapp_base_url: str = "https://wa.me"
    notify_stagger_seconds: float = 0.5

    # Export
    download_location_placeholder: str = "Not specified"

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = True
    rate_limit_default: str = "120/minute"
    rate_limit_export: str = "20/minute"
    rate_limit_send: str = "10/minute"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
