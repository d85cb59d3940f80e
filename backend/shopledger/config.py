# backend/shopledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer token for /api/functions callables; empty disables the check
    FUNCTIONS_API_TOKEN = os.environ.get("FUNCTIONS_API_TOKEN", "")

    # Shop identities are "<shop code>@<domain>"
    SHOP_EMAIL_DOMAIN = os.environ.get("SHOP_EMAIL_DOMAIN", "ebondregister.com")

    # Business dates (sale days, scheduled job dates) are in this zone
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Tokyo")

    SHOP_SYNC_BATCH_SIZE = int(os.environ.get("SHOP_SYNC_BATCH_SIZE", "100"))
    TREND_MAX_MONTHS = int(os.environ.get("TREND_MAX_MONTHS", "6"))

    # External back-office system (KKB)
    KKB_BASE_URL = os.environ.get("KKB_BASE_URL", "https://kkb.example.jp")
    KKB_LOGIN_PATH = os.environ.get("KKB_LOGIN_PATH", "/login")
    KKB_LOGOUT_PATH = os.environ.get("KKB_LOGOUT_PATH", "/logout")
    KKB_ROSTER_PATH = os.environ.get("KKB_ROSTER_PATH", "/shops/list")
    KKB_CLOSING_PATH = os.environ.get("KKB_CLOSING_PATH", "/closing/run")
    KKB_USER_CODE = os.environ.get("KKB_USER_CODE", "")
    KKB_PASSWORD = os.environ.get("KKB_PASSWORD", "")
    KKB_LOGIN_SETTLE_SECONDS = float(os.environ.get("KKB_LOGIN_SETTLE_SECONDS", "3"))
    KKB_TIMEOUT_SECONDS = float(os.environ.get("KKB_TIMEOUT_SECONDS", "60"))

    # Tests lower this; bcrypt accepts 4..31
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    FTP_TIMEOUT_SECONDS = float(os.environ.get("FTP_TIMEOUT_SECONDS", "30"))

    # Zero-arg callables replacing the KKB client / FTP uploader (tests, dry runs)
    EXTERNAL_SYSTEM_FACTORY = None
    CLOSING_UPLOADER_FACTORY = None
