# backend/partner_portal/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key. Also signs partner tokens.
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    PARTNER_TOKEN_SALT = os.environ.get("PARTNER_TOKEN_SALT", "partner-identity")

    # SQLite DB stored in backend/instance/partner_portal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location (hosted Postgres in production)
        "sqlite:///partner_portal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # List views
    PAGE_SIZE = int(os.environ.get("PAGE_SIZE", "10"))

    # Realtime refresh: burst of change events -> one refetch after this quiet period
    REFETCH_DEBOUNCE_SECONDS = float(os.environ.get("REFETCH_DEBOUNCE_SECONDS", "0.15"))
    # Polling fallback for mounted views; 0 disables
    POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "10"))
    # Mounted views not read for this long are closed; 0 disables
    VIEW_IDLE_TIMEOUT_SECONDS = float(os.environ.get("VIEW_IDLE_TIMEOUT_SECONDS", "900"))

    # New-order alert asset served to the partner's browser; unset disables sound
    ALERT_SOUND_URL = os.environ.get("ALERT_SOUND_URL", "/sound.wav")

    DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", "5"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
