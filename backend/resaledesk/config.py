# backend/resaledesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Required: 64 hex chars (32 bytes) for the credential vault.
    # create_app() refuses to start without it.
    DATA_KEY = os.environ.get("DATA_KEY")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///resaledesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a storage call may wait for a connection or a lock
    STORE_TIMEOUT_SECONDS = float(os.environ.get("STORE_TIMEOUT_SECONDS", "10"))

    ORDER_ID_PREFIX = os.environ.get("ORDER_ID_PREFIX", "PH")
    ORDER_ID_MAX_ATTEMPTS = int(os.environ.get("ORDER_ID_MAX_ATTEMPTS", "3"))

    EXPIRING_SOON_DAYS = int(os.environ.get("EXPIRING_SOON_DAYS", "30"))


def engine_options(database_uri: str, timeout: float) -> dict:
    """SQLAlchemy engine options carrying the storage timeout."""
    if database_uri.startswith("sqlite"):
        # SQLite (pysqlite) waits this long on a locked database before raising
        return {"connect_args": {"timeout": timeout}}
    return {"pool_timeout": timeout}
