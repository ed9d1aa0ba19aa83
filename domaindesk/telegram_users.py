# -*- coding: utf-8 -*-
"""Telegram subscriber records kept up to date by the bot."""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from .db import get_db, new_id, now_iso
from .errors import NotFound

logger = logging.getLogger(__name__)

JOIN_PENDING = "pending"
JOIN_APPROVED = "approved"
JOIN_DECLINED = "declined"


def _row_to_user(row) -> Dict[str, Any]:
    doc = dict(row)
    doc["is_subscribed"] = bool(doc.get("is_subscribed"))
    return doc


def save_user_info(user: Any, subscribed: bool = True) -> bool:
    """
    Upserts the sender of an update (a telebot User) by telegram_id.
    Returns False instead of raising so a storage hiccup never breaks a reply.
    """
    try:
        telegram_id = str(user.id)
        now = now_iso()
        conn = get_db(); cur = conn.cursor()
        cur.execute("""
            INSERT INTO telegram_users (id, telegram_id, username, first_name, last_name, is_subscribed,
                                        last_interaction, createdAt, updatedAt)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(telegram_id) DO UPDATE SET
                username=excluded.username,
                first_name=excluded.first_name,
                last_name=excluded.last_name,
                is_subscribed=excluded.is_subscribed,
                last_interaction=excluded.last_interaction,
                updatedAt=excluded.updatedAt
        """, (new_id(), telegram_id, getattr(user, "username", None) or "",
              getattr(user, "first_name", None) or "", getattr(user, "last_name", None) or "",
              int(subscribed), now, now, now))
        conn.commit(); conn.close()
        logger.debug("User saved: %s (%s)", getattr(user, "username", None) or getattr(user, "first_name", ""), telegram_id)
        return True
    except sqlite3.Error:
        logger.exception("Error saving user info")
        return False


def set_subscription(telegram_id: Any, subscribed: bool):
    conn = get_db(); cur = conn.cursor()
    cur.execute("UPDATE telegram_users SET is_subscribed = ?, updatedAt = ? WHERE telegram_id = ?",
                (int(subscribed), now_iso(), str(telegram_id)))
    conn.commit(); conn.close()


def set_join_request(telegram_id: Any, state: Optional[str]):
    conn = get_db(); cur = conn.cursor()
    now = now_iso()
    fields = "join_request = ?, updatedAt = ?"
    params: List[Any] = [state, now]
    if state == JOIN_APPROVED:
        fields += ", is_subscribed = 1"
    cur.execute(f"UPDATE telegram_users SET {fields} WHERE telegram_id = ?", params + [str(telegram_id)])
    conn.commit(); conn.close()


def list_users() -> List[Dict[str, Any]]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM telegram_users ORDER BY createdAt DESC, rowid DESC")
    rows = [_row_to_user(r) for r in cur.fetchall()]
    conn.close()
    return rows


def get_user(telegram_id: Any) -> Dict[str, Any]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM telegram_users WHERE telegram_id = ?", (str(telegram_id),))
    row = cur.fetchone()
    conn.close()
    if not row:
        raise NotFound("User not found")
    return _row_to_user(row)
