# -*- coding: utf-8 -*-
"""Visitor comments left on the storefront."""

import logging
from typing import Any, Dict, List

from .db import get_db, new_id, now_iso
from .errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 2000


def create_comment(telegram_username: Any, content: Any) -> Dict[str, Any]:
    username = str(telegram_username or "").strip()
    text = str(content or "").strip()
    if not username or not text:
        raise ValidationError("Telegram username and content are required")
    if len(text) > MAX_CONTENT_LENGTH:
        raise ValidationError(f"Content must be at most {MAX_CONTENT_LENGTH} characters")
    now = now_iso()
    doc = {
        "id": new_id(),
        "telegram_username": username,
        "content": text,
        "status": "New",
        "createdAt": now,
        "updatedAt": now,
    }
    conn = get_db(); cur = conn.cursor()
    cur.execute("INSERT INTO comments (id, telegram_username, content, status, createdAt, updatedAt) VALUES (?, ?, ?, ?, ?, ?)",
                (doc["id"], username, text, "New", now, now))
    conn.commit(); conn.close()
    logger.info("Comment %s from %s", doc["id"], username)
    return doc


def list_comments() -> List[Dict[str, Any]]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM comments ORDER BY createdAt DESC, rowid DESC")
    rows = [dict(r) for r in cur.fetchall()]
    conn.close()
    return rows


def count_new() -> int:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT COUNT(*) FROM comments WHERE status = 'New'")
    total = cur.fetchone()[0]
    conn.close()
    return total


def mark_read(comment_id: str):
    conn = get_db(); cur = conn.cursor()
    cur.execute("UPDATE comments SET status = 'Read', updatedAt = ? WHERE id = ?", (now_iso(), comment_id))
    conn.commit()
    changed = cur.rowcount
    conn.close()
    if not changed:
        raise NotFound("Comment not found")


def delete_comment(comment_id: str):
    conn = get_db(); cur = conn.cursor()
    cur.execute("DELETE FROM comments WHERE id = ?", (comment_id,))
    conn.commit()
    deleted = cur.rowcount
    conn.close()
    if not deleted:
        raise NotFound("Comment not found")
