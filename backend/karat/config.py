# backend/karat/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/karat.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///karat.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger currency and invoice numbering
    KARAT_CURRENCY = os.environ.get("KARAT_CURRENCY", "INR")
    KARAT_INVOICE_PREFIX = os.environ.get("KARAT_INVOICE_PREFIX", "INV")

    # Default window for /api/emi-payments/upcoming
    KARAT_UPCOMING_DAYS = int(os.environ.get("KARAT_UPCOMING_DAYS", "7"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
