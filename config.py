import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as pantry.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "pantry.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # SQLite only: how long a writer waits for BEGIN IMMEDIATE
    SQLITE_BUSY_TIMEOUT_MS = int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "30000"))

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "pantry_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Refresh last_seen_at at most this often (each refresh is a DB write)
    SESSION_TOUCH_SECONDS = 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = False  # set True when using HTTPS

    # Booking rules
    PANTRY_TIMEZONE = os.getenv("PANTRY_TIMEZONE", "America/Regina")
    MONTHLY_BOOKING_LIMIT = int(os.getenv("MONTHLY_BOOKING_LIMIT", "2"))
    BOOKING_RETENTION_YEARS = int(os.getenv("BOOKING_RETENTION_YEARS", "1"))

    # Used to build cancel/reschedule links in emails
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
    PANTRY_NAME = os.getenv("PANTRY_NAME", "Harvest Pantry")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Email queue retries (exponential backoff, base seconds)
    EMAIL_QUEUE_MAX_RETRIES = int(os.getenv("EMAIL_QUEUE_MAX_RETRIES", "5"))
    EMAIL_QUEUE_BACKOFF_SECONDS = int(os.getenv("EMAIL_QUEUE_BACKOFF_SECONDS", "60"))

    # Staff signup (set in environment for production)
    STAFF_SIGNUP_CODE = os.getenv("STAFF_SIGNUP_CODE")

    # Basic app settings
    DEBUG = False
