import os
from dotenv import load_dotenv
load_dotenv()


def _env_bool(name, default=False):
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///hirehub.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # background jobs
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_ENABLED = _env_bool("RQ_ENABLED", True)
    CRON_SECRET = os.getenv("CRON_SECRET")
    CRON_BATCH_SIZE = int(os.getenv("CRON_BATCH_SIZE", "10"))
    CRON_BATCH_DELAY = float(os.getenv("CRON_BATCH_DELAY", "0.1"))

    # mail
    SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@hirehub.example")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "HireHub")
    MAIL_TIMEOUT = float(os.getenv("MAIL_TIMEOUT", "15"))
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@hirehub.example")
    BILLING_EMAIL = os.getenv("BILLING_EMAIL", "billing@hirehub.example")
    APP_URL = os.getenv("APP_URL", "http://localhost:5000")

    # AI parsing of free-text replies
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "30"))
    OPENAI_MAX_ATTEMPTS = int(os.getenv("OPENAI_MAX_ATTEMPTS", "4"))

    # protection / check-in policy
    PROTECTION_PERIOD_MONTHS = 12
    CHECK_IN_CADENCE_DAYS = (30, 60, 90, 180, 365)
    CHECK_IN_TOKEN_DAYS = int(os.getenv("CHECK_IN_TOKEN_DAYS", "7"))
    INTRODUCTION_TOKEN_DAYS = int(os.getenv("INTRODUCTION_TOKEN_DAYS", "7"))
    EXPIRY_WARNING_DAYS = 7
    EXPIRY_WARNING_TOLERANCE_DAYS = 1
    SEND_FINAL_CHECK_INS = _env_bool("SEND_FINAL_CHECK_INS", True)
    INVOICE_DUE_DAYS = 30
    DEFAULT_FEE_PERCENTAGE = 18


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RQ_ENABLED = False
    CRON_SECRET = None
    CRON_BATCH_DELAY = 0
    SENDGRID_API_KEY = "test-key"
    OPENAI_API_KEY = None
    WTF_CSRF_ENABLED = False
