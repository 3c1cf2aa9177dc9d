import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./aesthiq.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Session cookie (signed with SECRET_KEY)
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "aesthiq_session")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(24 * 60 * 60)))  # 24 hours
SESSION_COOKIE_SECURE = os.getenv("ENVIRONMENT", "development").lower() == "production"

# Frontend base URL for redirects and Stripe onboarding return links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5000")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
STRIPE_API_VERSION = os.getenv("STRIPE_API_VERSION", "2023-10-16")
# Country used for new Connect Express accounts
STRIPE_CONNECT_COUNTRY = os.getenv("STRIPE_CONNECT_COUNTRY", "US")
STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")

# Platform subscription trial length for clinics
PLATFORM_TRIAL_DAYS = int(os.getenv("PLATFORM_TRIAL_DAYS", "30"))

# Skips the payment-required redirect for clinic pages.
# Keep false outside local development: clinics must finish Stripe onboarding.
PAYMENT_GATE_BYPASS = os.getenv("PAYMENT_GATE_BYPASS", "false").lower() == "true"
