# backoffice/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Which order operations charge tax: "legacy", "uniform" or "off".
    # legacy: no tax on create / discount update, Settings rate on add-items.
    ORDER_TAX_MODE = os.environ.get("ORDER_TAX_MODE", "legacy")

    # Lock conflicts (deadlocks, stale versions) re-run the whole unit
    LOCK_RETRY_ATTEMPTS = int(os.environ.get("LOCK_RETRY_ATTEMPTS", "3"))
    LOCK_RETRY_BACKOFF = float(os.environ.get("LOCK_RETRY_BACKOFF", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    ORDERS_PAGE_SIZE_MAX = int(os.environ.get("ORDERS_PAGE_SIZE_MAX", "100"))
