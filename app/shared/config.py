# app/shared/config.py
from pathlib import Path
from fastapi import Request
from pydantic import BaseModel
import os

ROOT = Path(__file__).resolve().parents[2]   # project root
STORAGE_DIR = ROOT / "storage"

def _default_db_url() -> str:
    return f"sqlite:///{(STORAGE_DIR / 'civic.db').as_posix()}"

class Settings(BaseModel):
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: int = int(os.getenv("PORT", "3000"))

    DATABASE_URL: str = os.getenv("DATABASE_URL") or _default_db_url()

    # demo auth controls
    AUTH_DEMO: bool = os.getenv("AUTH_DEMO", "false").lower() == "true"
    DEMO_TOKEN: str = os.getenv("DEMO_TOKEN", "demo")
    DEMO_EMAIL: str = os.getenv("DEMO_EMAIL", "demo@example.com")

    # JWT settings for the identity provider
    JWT_KEY: str = os.getenv("JWT_KEY", "dev-secret")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")
    JWT_ISS: str | None = os.getenv("JWT_ISS")
    JWT_AUD: str | None = os.getenv("JWT_AUD")
    JWT_EXPIRE_MIN: int = int(os.getenv("JWT_EXPIRE_MIN", "60"))

    # Stripe
    STRIPE_SECRET_KEY: str | None = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: str | None = os.getenv("STRIPE_WEBHOOK_SECRET")
    SITE_URL: str = os.getenv("SITE_URL", "http://localhost:5173")
    CURRENCY: str = os.getenv("CURRENCY", "usd")
    BOOST_PRICE_CENTS: int = int(os.getenv("BOOST_PRICE_CENTS", "10000"))
    SUBSCRIPTION_PRICE_CENTS: int = int(os.getenv("SUBSCRIPTION_PRICE_CENTS", "100000"))

    # free tier
    FREE_ISSUE_LIMIT: int = int(os.getenv("FREE_ISSUE_LIMIT", "3"))

settings = Settings()

# FastAPI dep: the settings the running app was built with
def get_settings(request: Request) -> Settings:
    return request.app.state.settings
