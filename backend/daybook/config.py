# backend/daybook/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/daybook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///daybook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Registers created on first use get this IANA zone for their day boundary
    DEFAULT_REGISTER_TIMEZONE = os.environ.get("DEFAULT_REGISTER_TIMEZONE", "UTC")

    # Forgotten-closing sweep runs this many seconds after session start
    SWEEP_DELAY_SECONDS = int(os.environ.get("SWEEP_DELAY_SECONDS", "5"))

    # A closing that has not committed within this window is rolled back
    CLOSING_TIMEOUT_SECONDS = float(os.environ.get("CLOSING_TIMEOUT_SECONDS", "30"))

    # Tolerance used when deriving payment status from amount_paid vs total_amount
    PAYMENT_EPSILON = 0.01

    CELERY = {
        "broker_url": os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "result_backend": os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_always_eager": _env_bool("CELERY_TASK_ALWAYS_EAGER"),
        "task_serializer": "json",
        "accept_content": ["json"],
        "timezone": "UTC",
        "enable_utc": True,
    }


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SWEEP_DELAY_SECONDS = 0
    CELERY = {
        **Config.CELERY,
        "broker_url": "memory://",
        "result_backend": "cache+memory://",
        "task_always_eager": True,
        "task_eager_propagates": True,
    }
