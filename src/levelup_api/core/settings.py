from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./levelup.db"
    database_echo: bool = False

    # Referral program
    referral_welcome_bonus_points: int = 100
    referral_referrer_bonus_points: int = 150
    referral_code_max_attempts: int = 20

    # Order numbering
    order_number_max_attempts: int = 10

    # Sessions / credentials
    session_ttl_days: int = 7
    password_hash_iterations: int = 260_000

    # Pricing policy
    institutional_email_domains: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["duocuc.cl", "duoc.cl", "profesor.duoc.cl"]
    )
    institutional_discount_rate: Decimal = Decimal("0.20")
    points_currency_value: Decimal = Decimal("1")
    points_earn_divisor: Decimal = Decimal("100")
    currency_quantum: Decimal = Decimal("1")

    # Redemptions
    redemption_decrements_stock: bool = False

    # Tiers (lifetime points threshold -> label)
    default_tier: str = "bronce"
    tier_thresholds: dict[str, int] = Field(
        default_factory=lambda: {"bronce": 0, "plata": 1000, "oro": 5000, "diamante": 15000}
    )

    @field_validator("institutional_email_domains", mode="before")
    @classmethod
    def _parse_domain_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip().lower() for item in value if str(item).strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
