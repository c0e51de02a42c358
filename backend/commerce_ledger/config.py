# backend/commerce_ledger/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/commerce_ledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///commerce_ledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for a single write transaction. PostgreSQL gets
    # SET LOCAL statement_timeout, SQLite uses it as the busy timeout.
    LEDGER_STATEMENT_TIMEOUT_MS = int(os.environ.get("LEDGER_STATEMENT_TIMEOUT_MS", "5000"))
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))

    # Store-level policy default; a StoreSetting row overrides it per store.
    ALLOW_NEGATIVE_STOCK = _env_flag("ALLOW_NEGATIVE_STOCK", False)

    # Document numbering: "<prefix>-<YYYYMMDD>-<seq>"
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "S")
    PURCHASE_NUMBER_PREFIX = os.environ.get("PURCHASE_NUMBER_PREFIX", "P")
    DOCUMENT_NUMBER_PAD = int(os.environ.get("DOCUMENT_NUMBER_PAD", "4"))
    # Optional callable (store_id, kind, doc_date) -> str replacing the sequence table
    DOCUMENT_NUMBERER = None

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
