"""
backend/app/config.py

Purpose:
    Central settings loading for backend services.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    ODDSAPIKEY: str = ""
    SPORTSDATAIO_API_KEY: str = ""
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "betledger"
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Shared secret for the settlement trigger endpoints (cron / admin tools)
    SETTLEMENT_API_KEY: str = ""

    # Score feed (TheOddsAPI)
    THEODDSAPI_BASE_URL: str = "https://api.the-odds-api.com/v4"
    SCORES_DAYS_FROM: int = 3  # API rejects larger values (INVALID_SCORES_DAYS_FROM)
    SCORES_CACHE_TTL_SECONDS: int = 60
    THEODDSAPI_RATE_LIMIT_RPM: int = 30

    # Player stats feed (SportsDataIO)
    SPORTSDATAIO_BASE_URL: str = "https://api.sportsdata.io/v3"
    PLAYER_STATS_CACHE_TTL_SECONDS: int = 3600
    SPORTSDATAIO_RATE_LIMIT_RPM: int = 60

    # Provider HTTP behaviour
    PROVIDER_TIMEOUT_SECONDS: float = 15.0
    PROVIDER_MAX_RETRIES: int = 2
    PROVIDER_RETRY_BASE_DELAY: float = 2.0

    # Settlement runner
    SETTLEMENT_CONCURRENCY: int = 4
    SETTLEMENT_MAX_BETS_PER_PASS: int = 5000

    # Webhook notifications (Discord / Whop)
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
