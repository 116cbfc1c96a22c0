import os
from dotenv import load_dotenv
load_dotenv()


def _is_production():
    return (os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "").lower() == "production"


class Config:
    SECRET_KEY = os.getenv("FLASK_SECRET", "change-me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Shanghai")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Session tokens (admin / client cookies)
    SESSION_SECRET = os.getenv("SESSION_SECRET") or ("" if _is_production() else "dev-secret")
    SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 7)))  # 7 days
    SESSION_COOKIE_SECURE = _is_production()

    BOOKINGS_PAGE_SIZE = int(os.getenv("BOOKINGS_PAGE_SIZE", "10"))
