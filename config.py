"""
Runtime configuration

Everything is read from environment variables once and cached.
"""
import os
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: Optional[str] = Field(None, description="MongoDB connection string")
    database_name: str = Field("ecommerceDB", description="MongoDB database name")

    session_secret: str = Field("dev-secret", description="Key used to sign the session cookie")
    session_max_age: int = Field(15 * 60, description="Session lifetime in seconds")
    base_url: str = Field("http://localhost:8000", description="Public URL used in e-mailed links")

    currency_api_key: Optional[str] = None
    currency_api_url: str = "https://v6.exchangerate-api.com/v6"
    rates_ttl_seconds: int = Field(3600, ge=0, description="How long fetched FX rates stay fresh")

    sneaker_db_api_key: Optional[str] = None
    sneaker_db_host: str = "the-sneaker-database.p.rapidapi.com"

    resend_api_key: Optional[str] = None
    resend_from_email: str = "orders@sneakslab.shop"
    support_inbox_email: str = "admin@sneakslab.shop"

    turnstile_secret: Optional[str] = None

    geoip_url: str = "https://ipapi.co"
    default_country: str = "US"

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    env = {
        "database_url": os.getenv("DATABASE_URL"),
        "database_name": os.getenv("DATABASE_NAME"),
        "session_secret": os.getenv("SESSION_SECRET"),
        "session_max_age": os.getenv("SESSION_MAX_AGE"),
        "base_url": os.getenv("BASE_URL"),
        "currency_api_key": os.getenv("CURRENCY_API_KEY"),
        "currency_api_url": os.getenv("CURRENCY_API_URL"),
        "rates_ttl_seconds": os.getenv("RATES_TTL_SECONDS"),
        "sneaker_db_api_key": os.getenv("SNEAKER_DB_API_KEY"),
        "sneaker_db_host": os.getenv("SNEAKER_DB_HOST"),
        "resend_api_key": os.getenv("RESEND_API_KEY"),
        "resend_from_email": os.getenv("RESEND_FROM_EMAIL"),
        "support_inbox_email": os.getenv("SUPPORT_INBOX_EMAIL"),
        "turnstile_secret": os.getenv("TURNSTILE_SECRET"),
        "geoip_url": os.getenv("GEOIP_URL"),
        "default_country": os.getenv("DEFAULT_COUNTRY"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    # Unset variables fall back to the model defaults
    return Settings(**{k: v for k, v in env.items() if v})
