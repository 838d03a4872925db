# backend/salesflow/config.py
from __future__ import annotations
import os

from flask import current_app, has_app_context


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salesflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///salesflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = _env_flag("LOG_JSON", True)

    DEFAULT_PAGE_SIZE = int(os.environ.get("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "100"))

    # Legacy flow resolution: when a process has no links of a kind, resolve
    # quotation/sales order by contact and the rest by sales order.
    SALES_PROCESS_CONTACT_FALLBACK = _env_flag("SALES_PROCESS_CONTACT_FALLBACK", False)

    TOP_PROCESSES_LIMIT = int(os.environ.get("TOP_PROCESSES_LIMIT", "5"))


def config_value(key: str, default=None):
    """Read a setting from the active Flask app, or Config when no app is active."""
    if has_app_context():
        return current_app.config.get(key, default)
    return getattr(Config, key, default)
