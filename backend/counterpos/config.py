# backend/counterpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/counterpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///counterpos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ATOMIC: one transaction, conditional stock decrement, shared points rule.
    # LEGACY: sequential read-modify-write per entity, no rollback, flat points.
    INVOICE_COMMIT_MODE = os.environ.get("INVOICE_COMMIT_MODE", "ATOMIC").upper()

    # PER_ROW: each "Points" payment row is capped on its own.
    # SHARED: all "Points" rows draw from one cap.
    POINTS_CAP_POLICY = os.environ.get("POINTS_CAP_POLICY", "PER_ROW").upper()

    POINTS_EARN_DIVISOR = int(os.environ.get("POINTS_EARN_DIVISOR", "10"))

    INVOICE_NUMBER_PREFIX = os.environ.get("INVOICE_NUMBER_PREFIX", "INV")

    # Invoice-level discount % applied by the preview when the caller sends none
    CUSTOMER_TYPE_DEFAULT_DISCOUNTS = {
        "Retail": 0,
        "Member": 0,
        "VIP": 0,
        "Wholesale": 0,
        "Dealer": 0,
        "Depo": 0,
    }

    LOW_STOCK_REPORT_LIMIT = int(os.environ.get("LOW_STOCK_REPORT_LIMIT", "50"))
