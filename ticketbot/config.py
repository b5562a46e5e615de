"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://ticketbot:ticketbot@db:5432/ticketbot"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Managed hosts provide postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # WhatsApp Cloud API
    whatsapp_phone_number_id: str = ""
    whatsapp_access_token: str = ""
    whatsapp_graph_api_version: str = "v19.0"
    whatsapp_verify_token: str = ""
    whatsapp_typing_indicator: bool = False
    whatsapp_timeout_seconds: int = 15
    whatsapp_max_retries: int = 2
    whatsapp_base_delay_ms: int = 500
    whatsapp_max_delay_ms: int = 8_000

    # Paystack
    paystack_secret_key: str = "sk_test_placeholder"
    paystack_base_url: str = "https://api.paystack.co"
    paystack_timeout_seconds: int = 20
    paystack_callback_url: str | None = None
    paystack_max_retries: int = 1
    paystack_base_delay_ms: int = 500
    paystack_max_delay_ms: int = 4_000

    # Public URLs / media
    public_base_url: str = "http://localhost:8000"
    ticket_validation_base_url: str | None = None
    media_dir: str = "media"

    # Checkout
    channel_marker: str = "whatsapp"
    default_currency: str = "NGN"
    resend_receipt_on_duplicate: bool = False

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def callback_url(self) -> str:
        if self.paystack_callback_url:
            return self.paystack_callback_url
        return f"{self.public_base_url.rstrip('/')}/api/v1/webhooks/paystack"

    @property
    def validation_base_url(self) -> str:
        return (self.ticket_validation_base_url or self.public_base_url).rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
