# backend/tokopos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tokopos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tokopos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ceiling for one atomic unit of work (sale, distribution, payment)
    TRANSACTION_TIMEOUT_SECONDS = float(os.environ.get("TRANSACTION_TIMEOUT_SECONDS", "15"))
    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("TRANSACTION_RETRY_ATTEMPTS", "3"))

    CENTRAL_WAREHOUSE_NAME = os.environ.get("CENTRAL_WAREHOUSE_NAME", "Gudang Pusat")
    DEFAULT_CUSTOMER_NAME = os.environ.get("DEFAULT_CUSTOMER_NAME", "Pelanggan Umum")

    # Percent applied after discounts; 0 disables tax
    TAX_RATE_PERCENT = float(os.environ.get("TAX_RATE_PERCENT", "0"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
