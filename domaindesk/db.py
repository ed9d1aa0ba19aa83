# -*- coding: utf-8 -*-
"""
SQLite storage. One table per collection, one short-lived connection per
operation so worker threads never share a connection.
"""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Optional

from . import config

_db_file = config.DB_FILE


def set_db_file(path: str):
    global _db_file
    _db_file = path


def get_db_file() -> str:
    return _db_file


def get_db() -> sqlite3.Connection:
    conn = sqlite3.connect(_db_file, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def new_id() -> str:
    return uuid.uuid4().hex[:20]


def init_db(path: Optional[str] = None):
    if path:
        set_db_file(path)
    conn = get_db()
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL")
    # domains
    cur.execute("""
    CREATE TABLE IF NOT EXISTS domains (
        id TEXT PRIMARY KEY,
        domainName TEXT NOT NULL UNIQUE,
        country TEXT,
        category TEXT,
        da INTEGER DEFAULT 0,
        pa INTEGER DEFAULT 0,
        ss INTEGER DEFAULT 0,
        backlink INTEGER DEFAULT 0,
        price REAL,
        status INTEGER DEFAULT 1, -- 1 available, 0 sold
        panelLink TEXT DEFAULT '',
        panelUsername TEXT DEFAULT '',
        panelPassword TEXT DEFAULT '',
        goodLink TEXT DEFAULT '',
        hostingLink TEXT DEFAULT '',
        hostingUsername TEXT DEFAULT '',
        hostingPassword TEXT DEFAULT '',
        ischannel INTEGER DEFAULT 0,
        postDateTime TEXT,
        createdAt TEXT,
        updatedAt TEXT
    )""")
    # tickets - request_domains is a JSON array of domain names
    cur.execute("""
    CREATE TABLE IF NOT EXISTS tickets (
        id TEXT PRIMARY KEY,
        customer_id TEXT NOT NULL,
        request_domains TEXT NOT NULL,
        request_time TEXT,
        price REAL DEFAULT 0,
        status TEXT DEFAULT 'New',
        source TEXT DEFAULT 'web',
        createdAt TEXT,
        updatedAt TEXT
    )""")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_tickets_customer ON tickets(customer_id, request_time)")
    # comments
    cur.execute("""
    CREATE TABLE IF NOT EXISTS comments (
        id TEXT PRIMARY KEY,
        telegram_username TEXT,
        content TEXT,
        status TEXT DEFAULT 'New',
        createdAt TEXT,
        updatedAt TEXT
    )""")
    # telegram subscribers
    cur.execute("""
    CREATE TABLE IF NOT EXISTS telegram_users (
        id TEXT PRIMARY KEY,
        telegram_id TEXT NOT NULL UNIQUE,
        username TEXT DEFAULT '',
        first_name TEXT DEFAULT '',
        last_name TEXT DEFAULT '',
        is_subscribed INTEGER DEFAULT 0,
        join_request TEXT, -- pending, approved, declined
        last_interaction TEXT,
        createdAt TEXT,
        updatedAt TEXT
    )""")
    # admin panel accounts
    cur.execute("""
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        createdAt TEXT
    )""")
    conn.commit()
    conn.close()
