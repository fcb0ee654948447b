# backend/genepos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/genepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///genepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Audience for Google ID tokens (POST /api/auth/google)
    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID")

    # Role for self-registered and first-time Google users
    DEFAULT_SIGNUP_ROLE = os.environ.get("DEFAULT_SIGNUP_ROLE", "owner")

    # Zone for today/week/month/year report boundaries
    APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "UTC")

    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))

    # Off: sale posting may drive stock negative (historical behavior)
    ENFORCE_STOCK_FLOOR = _env_bool("ENFORCE_STOCK_FLOOR", False)

    # "shop" scopes dashboard/report rollups to the caller's shop, "global" does not
    DASHBOARD_SCOPE = os.environ.get("DASHBOARD_SCOPE", "shop")

    # e.g. {"product.create": "owner"} for owner-only catalog writes
    AUTHZ_ROLE_OVERRIDES: dict[str, str] = {}

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    ]
