import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# "development", "staging" or "production"
APP_ENV = os.getenv("APP_ENV", "development").strip().lower()
IS_PRODUCTION = APP_ENV == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./papasito.db")

# Session tokens (HS256 JWT carried in a cookie or a Bearer header)
SESSION_SECRET = os.getenv("SESSION_SECRET")
if not SESSION_SECRET:
    import warnings

    warnings.warn(
        "SESSION_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SESSION_SECRET = "INSECURE-DEV-SESSION-SECRET-CHANGE-ME"  # noqa: S105 - Dev fallback only
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "papasito.session-token")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(30 * 24 * 60 * 60)))  # 30 days

# 500 responses carry the raw exception message unless this is off (always off in production)
_expose_default = "false" if IS_PRODUCTION else "true"
EXPOSE_ERROR_DETAILS = os.getenv("EXPOSE_ERROR_DETAILS", _expose_default).lower() == "true"

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PUBLIC_KEY = os.getenv("STRIPE_PUBLIC_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")

# Brevo (transactional email + SMS)
BREVO_API_KEY = os.getenv("BREVO_API_KEY")
BREVO_BASE_URL = os.getenv("BREVO_BASE_URL", "https://api.brevo.com/v3")
EMAIL_SENDER_ADDRESS = os.getenv("EMAIL_SENDER_ADDRESS", "noreply@lepapasito.com")
EMAIL_SENDER_NAME = os.getenv("EMAIL_SENDER_NAME", "Le Papasito")
SMS_SENDER = os.getenv("SMS_SENDER", "LePapasito")

# Frontend base URL used in email links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
