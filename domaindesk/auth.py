# -*- coding: utf-8 -*-
"""
Admin panel accounts: bcrypt-hashed passwords and PyJWT bearer tokens.
"""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import bcrypt
import jwt
from flask import current_app, g, request

from .db import get_db, new_id, now_iso
from .errors import AuthError, ValidationError

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def get_user_by_username(username: str) -> Optional[Dict[str, Any]]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM users WHERE username = ?", (username,))
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def create_user(username: str, password: str) -> Dict[str, Any]:
    doc = {"id": new_id(), "username": username, "password": hash_password(password), "createdAt": now_iso()}
    conn = get_db(); cur = conn.cursor()
    cur.execute("INSERT INTO users (id, username, password, createdAt) VALUES (?, ?, ?, ?)",
                (doc["id"], doc["username"], doc["password"], doc["createdAt"]))
    conn.commit(); conn.close()
    return doc


def ensure_default_admin(username: str, password: str) -> bool:
    """Creates the default admin account when it is missing. Returns True if one was created."""
    if get_user_by_username(username):
        return False
    try:
        create_user(username, password)
    except sqlite3.IntegrityError:
        return False
    logger.info("Default admin user created")
    return True


# -------------------------
# Tokens
# -------------------------
def issue_token(user: Dict[str, Any], secret: str, algorithm: str = "HS256", expires_hours: int = 24) -> str:
    payload = {
        "userId": user["id"],
        "username": user["username"],
        "exp": datetime.now(timezone.utc) + timedelta(hours=expires_hours),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")


def login(username: Any, password: Any) -> Dict[str, Any]:
    if not username or not password:
        raise ValidationError("Username and password are required")
    user = get_user_by_username(str(username))
    if not user or not verify_password(str(password), user["password"]):
        raise AuthError("Invalid credentials")
    cfg = current_app.config
    token = issue_token(user, cfg["JWT_SECRET"], cfg["JWT_ALGORITHM"], cfg["JWT_EXPIRES_HOURS"])
    logger.info("Admin login: %s", user["username"])
    return {"token": token, "user": {"id": user["id"], "username": user["username"]}}


def token_from_request() -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


def token_required(view):
    """Rejects the request with 401 unless it carries a valid bearer token; the claims land in g.user."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = token_from_request()
        if not token:
            raise AuthError("Access token required")
        cfg = current_app.config
        g.user = decode_token(token, cfg["JWT_SECRET"], cfg["JWT_ALGORITHM"])
        return view(*args, **kwargs)
    return wrapper
