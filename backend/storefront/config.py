# backend/storefront/config.py
from __future__ import annotations
import os


ORDER_STATUSES = ("PENDING", "CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED")
PAYMENT_STATUSES = ("PENDING", "PROCESSING", "COMPLETED", "FAILED", "REFUNDED")


def _unrestricted(values: tuple[str, ...]) -> dict[str, set[str]]:
    # Every value may move to every other value (admin correction allowed)
    return {v: set(values) for v in values}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ORIGINS = set(
        filter(None, os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(","))
    )

    # Session lifetime
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # Image storage (filesystem-backed; swap via app.extensions["image_storage"])
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", "uploads")
    IMAGE_BASE_URL = os.environ.get("IMAGE_BASE_URL", "/uploads")
    IMAGE_STORAGE_ROOT = os.environ.get("IMAGE_STORAGE_ROOT", "storefront")

    # Order lifecycle policy: current value -> values it may move to.
    # Tighten here (or via config overrides) without touching order_service.
    ORDER_STATUS_TRANSITIONS = _unrestricted(ORDER_STATUSES)
    PAYMENT_STATUS_TRANSITIONS = _unrestricted(PAYMENT_STATUSES)

    DEFAULT_COUNTRY = "Bangladesh"
    HOT_DEAL_MIN_DISCOUNT = 10
    HOT_DEAL_LIMIT = 20
    PREORDER_MAX_IMAGES = 3
