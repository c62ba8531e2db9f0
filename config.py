import os
from dotenv import load_dotenv
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Premium Gate"
    SECRET_KEY: str = os.getenv("SECRET_KEY", "premium_secret_key_123")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///premium.db")

    # Session cookie lifetime (1 week)
    SESSION_TTL_SECONDS: int = 7 * 24 * 60 * 60

    # OAuth / OpenID Connect provider
    OAUTH_CLIENT_ID: Optional[str] = os.getenv("OAUTH_CLIENT_ID")
    OAUTH_CLIENT_SECRET: Optional[str] = os.getenv("OAUTH_CLIENT_SECRET")
    OAUTH_SERVER_METADATA_URL: str = "https://accounts.google.com/.well-known/openid-configuration"

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_API_VERSION: str = "2024-04-10"
    STRIPE_WEBHOOK_SECRET: Optional[str] = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_PRICE_ID: Optional[str] = None # Skips product/price lookup when set

    # Plan
    PLAN_NAME: str = "Premium Plan"
    PLAN_CURRENCY: str = "usd"
    PLAN_UNIT_AMOUNT: int = 100 # $1.00 in cents
    PLAN_INTERVAL: str = "month"
    PLAN_LOOKUP_KEY: str = "premium_monthly"

    PORTAL_RETURN_URL: Optional[str] = None # Defaults to the request base URL

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

settings = Settings()
