# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
      - PAYMENT_KEY_ID / PAYMENT_KEY_SECRET (payment gateway API keys)

    Optional:
      - checkout pricing knobs (delivery fee, COD fee, free delivery threshold)
      - CLEAR_CART_ON_ORDER to empty a signed-in user's cart after checkout
    """

    PROJECT_NAME: str = "Storefront API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # Supabase / DB config
    SUPABASE_URL: str | None = None
    DATABASE_URL: str
    DB_ECHO: bool = False
    DB_CONNECT_TIMEOUT_SECONDS: int = 10
    # Postgres only; SQLite URLs ignore both timeouts
    DB_STATEMENT_TIMEOUT_MS: int = 15000

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
    ]

    # Payment gateway (Razorpay-compatible REST API)
    PAYMENT_KEY_ID: str
    PAYMENT_KEY_SECRET: str
    PAYMENT_API_BASE: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_TIMEOUT_SECONDS: float = 10.0

    # Checkout pricing
    DELIVERY_FEE: float = 50.0
    FREE_DELIVERY_THRESHOLD: float = 999.0
    COD_FEE: float = 0.0

    ORDER_NUMBER_PREFIX: str = "RJ"

    # Cart is kept after checkout unless this is enabled
    CLEAR_CART_ON_ORDER: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
