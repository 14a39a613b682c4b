"""Environment configuration loaded with pydantic-settings."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import List, Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvSettings(BaseSettings):
    """Process environment (and optional .env) consumed by the Django settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    django_secret_key: str = "dev-secret"
    django_debug: bool = True
    allowed_hosts: List[str] = ["localhost", "127.0.0.1"]
    enable_operator: bool = False
    ops_allowed_hosts: List[str] = ["localhost", "127.0.0.1"]
    enable_django_admin: bool = False
    frontend_origin: str = "http://localhost:5173"
    time_zone: str = "Australia/Sydney"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = Field(default="admin")
    postgres_db: str = "spacehub"

    # Redis / Celery
    redis_url: str = "redis://redis:6379/0"
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None

    # Stripe
    stripe_secret_key: str = ""
    stripe_env: str = "dev"
    stripe_timeout_seconds: float = 20.0
    stripe_max_network_retries: int = 1
    platform_currency: str = "aud"

    # Fee configuration fallbacks, fractional rates
    default_service_rate: Decimal = Decimal("0.12")
    default_partner_commission_rate: Decimal = Decimal("0.04")
    default_processing_rate: Decimal = Decimal("0.0175")
    default_tax_rate: Decimal = Decimal("0.20")
    fee_settings_cache_ttl_seconds: float = 60.0

    # Processor fee estimate
    processor_domestic_rate: Decimal = Decimal("0.027")
    processor_domestic_fixed_fee: Decimal = Decimal("0.05")
    processor_international_rate: Decimal = Decimal("0.029")
    processor_international_fixed_fee: Decimal = Decimal("0.30")

    refund_lock_timeout_seconds: int = 120

    @computed_field
    @property
    def database(self) -> dict:
        """Django DATABASES['default'] entry for PostgreSQL."""
        return {
            "ENGINE": "django.db.backends.postgresql",
            "HOST": self.postgres_host,
            "PORT": self.postgres_port,
            "USER": self.postgres_user,
            "PASSWORD": self.postgres_password,
            "NAME": self.postgres_db,
        }


@lru_cache
def get_env() -> EnvSettings:
    return EnvSettings()
