# -*- coding: utf-8 -*-
"""
Runtime configuration. Everything can be overridden through ENV
(or a local .env file, picked up by python-dotenv).
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "0") -> bool:
    return (os.environ.get(name) or default).strip().lower() in ("1", "true", "yes", "on")


def _env_ids(name: str) -> List[int]:
    raw = os.environ.get(name) or ""
    return [int(part) for part in raw.replace(";", ",").split(",") if part.strip().lstrip("-").isdigit()]


# -------------------------
# CONFIG - override through ENV
# -------------------------
BOT_TOKEN = os.environ.get("BOT_TOKEN") or ""
CHANNEL_ID = os.environ.get("CHANNEL_ID") or ""
CHANNEL_INVITE_URL = os.environ.get("CHANNEL_INVITE_URL") or ""
WEB_APP_URL = os.environ.get("WEB_APP_URL") or "https://your-web-app-url.com"
SUPPORT_URL = os.environ.get("SUPPORT_URL") or "https://t.me/your_support_username"
ADMIN_IDS = set(_env_ids("ADMIN_IDS"))

JWT_SECRET = os.environ.get("JWT_SECRET") or "your-secret-key"
JWT_ALGORITHM = "HS256"
JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS") or 24)
DEFAULT_ADMIN_USERNAME = os.environ.get("DEFAULT_ADMIN_USERNAME") or "admin"
DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD") or "admin123"

DB_FILE = os.environ.get("DB_FILE") or "domaindesk.sqlite"

HOST = os.environ.get("HOST") or "0.0.0.0"
PORT = int(os.environ.get("PORT") or 5000)
USE_WEBHOOK = _env_flag("USE_WEBHOOK")
WEB_DOMAIN = os.environ.get("WEB_DOMAIN") or ""
CORS_ORIGINS = os.environ.get("CORS_ORIGINS") or "*"

MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB") or 5)
BULK_WORKERS = int(os.environ.get("BULK_WORKERS") or 8)

# join requests to CHANNEL_ID: approve automatically after a short pause,
# or hand them to ADMIN_IDS with approve/decline buttons
JOIN_AUTO_APPROVE = _env_flag("JOIN_AUTO_APPROVE", "1")
JOIN_APPROVAL_DELAY = float(os.environ.get("JOIN_APPROVAL_DELAY") or 2)

LOG_LEVEL = (os.environ.get("LOG_LEVEL") or "INFO").upper()


def as_dict() -> dict:
    """Settings in the shape Flask's app.config expects."""
    return {
        "BOT_TOKEN": BOT_TOKEN,
        "CHANNEL_ID": CHANNEL_ID,
        "CHANNEL_INVITE_URL": CHANNEL_INVITE_URL,
        "WEB_APP_URL": WEB_APP_URL,
        "SUPPORT_URL": SUPPORT_URL,
        "ADMIN_IDS": set(ADMIN_IDS),
        "JWT_SECRET": JWT_SECRET,
        "JWT_ALGORITHM": JWT_ALGORITHM,
        "JWT_EXPIRES_HOURS": JWT_EXPIRES_HOURS,
        "DEFAULT_ADMIN_USERNAME": DEFAULT_ADMIN_USERNAME,
        "DEFAULT_ADMIN_PASSWORD": DEFAULT_ADMIN_PASSWORD,
        "DB_FILE": DB_FILE,
        "USE_WEBHOOK": USE_WEBHOOK,
        "WEB_DOMAIN": WEB_DOMAIN,
        "CORS_ORIGINS": CORS_ORIGINS,
        "MAX_CONTENT_LENGTH": MAX_UPLOAD_MB * 1024 * 1024,
        "MAX_UPLOAD_MB": MAX_UPLOAD_MB,
        "BULK_WORKERS": BULK_WORKERS,
        "JOIN_AUTO_APPROVE": JOIN_AUTO_APPROVE,
        "JOIN_APPROVAL_DELAY": JOIN_APPROVAL_DELAY,
    }
