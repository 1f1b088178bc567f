"""
Application settings for the account engine.
Values come from the environment (or a .env file) and are cached per process.
"""
from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class BankSettings(BaseSettings):
    """Engine-level knobs. Database settings live in simbank.database."""

    admin_api_key: str = ""
    # Lifetime top-ups a referred account must reach before its referrer is paid.
    referral_threshold: Decimal = Decimal("2.00")
    default_referral_bonus: Decimal = Decimal("200.00")
    posted_probability: float = 0.85
    cors_allow_origins: str = "http://localhost:3000"
    auto_create_tables: bool = False
    api_docs_enabled: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"

    def cors_origins(self) -> list[str]:
        origins = [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]
        return origins or ["http://localhost:3000"]


@lru_cache
def get_bank_settings() -> BankSettings:
    return BankSettings()
