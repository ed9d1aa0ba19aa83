# -*- coding: utf-8 -*-
"""
Domain listings: normalization, validation and the single-document
operations used by the admin panel, the storefront, CSV import and bulk
actions.
"""

import logging
import math
import re
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from .db import get_db, new_id, now_iso
from .errors import Conflict, NotFound, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("domainName", "country", "category", "price")
INT_FIELDS = ("da", "pa", "ss", "backlink")
TEXT_FIELDS = ("country", "category", "panelLink", "panelUsername", "panelPassword",
               "goodLink", "hostingLink", "hostingUsername", "hostingPassword")
# credentials shared by every domain of a POST /multiple batch
SHARED_FIELDS = ("panelLink", "panelUsername", "panelPassword",
                 "hostingLink", "hostingUsername", "hostingPassword")
PUBLIC_FIELDS = ("id", "domainName", "country", "category", "da", "pa", "ss", "backlink",
                 "price", "status", "postDateTime", "createdAt")
UPDATABLE_FIELDS = ("domainName", "price", "status", "ischannel") + INT_FIELDS + TEXT_FIELDS
AVAILABLE_VALUES = ("true", "available", "1", "yes")
POSTED_VALUES = ("true", "posted", "1", "yes")

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://")
_DOMAIN_RE = re.compile(
    r"^(?=.{1,253}$)(?:[a-z0-9](?:[a-z0-9\-]{0,61}[a-z0-9])?\.)+(?:[a-z]{2,63}|xn--[a-z0-9\-]{1,59})$"
)


# -------------------------
# Normalization & coercion
# -------------------------
def normalize_domain_name(value: Any) -> str:
    """
    Canonical form used for storage and duplicate detection:
    'https://Example.COM/shop?x=1' -> 'example.com'.
    """
    if value is None:
        return ""
    name = str(value).strip().lower()
    name = _SCHEME_RE.sub("", name)
    name = re.split(r"[/?#]", name, 1)[0]
    name = name.rsplit("@", 1)[-1]
    name = name.split(":", 1)[0].strip().rstrip(".")
    if not name:
        return ""
    try:
        return name.encode("idna").decode("ascii")
    except UnicodeError:
        return name


def is_valid_domain_name(name: str) -> bool:
    return bool(name) and _DOMAIN_RE.match(name) is not None


def to_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return default


def to_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(str(value).strip().lstrip("$").replace(",", ""))
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def to_bool(value: Any, truthy: Tuple[str, ...] = ("true",)) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in truthy


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# -------------------------
# Row helpers
# -------------------------
def _row_to_domain(row: sqlite3.Row) -> Dict[str, Any]:
    doc = dict(row)
    doc["status"] = bool(doc.get("status"))
    doc["ischannel"] = bool(doc.get("ischannel"))
    return doc


def public_view(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Storefront projection: listing data without panel/hosting credentials."""
    return {key: doc.get(key) for key in PUBLIC_FIELDS}


def domain_exists(domain_name: str) -> bool:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT 1 FROM domains WHERE domainName = ?", (normalize_domain_name(domain_name),))
    found = cur.fetchone() is not None
    conn.close()
    return found


def find_by_name(domain_name: str) -> Optional[Dict[str, Any]]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM domains WHERE domainName = ?", (normalize_domain_name(domain_name),))
    row = cur.fetchone()
    conn.close()
    return _row_to_domain(row) if row else None


def get_domain(domain_id: str) -> Dict[str, Any]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM domains WHERE id = ?", (domain_id,))
    row = cur.fetchone()
    conn.close()
    if not row:
        raise NotFound("Domain not found")
    return _row_to_domain(row)


# -------------------------
# Create
# -------------------------
def build_domain(data: Dict[str, Any], shared: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Validates an incoming payload and returns a ready-to-insert document.
    Raises ValidationError for missing fields, a bad name or a non-positive price.
    """
    if any(_blank(data.get(field)) for field in REQUIRED_FIELDS):
        raise ValidationError("Required fields: domainName, country, category, price")
    domain_name = normalize_domain_name(data.get("domainName"))
    if not is_valid_domain_name(domain_name):
        raise ValidationError(f"Invalid domain name '{data.get('domainName')}'")
    price = to_float(data.get("price"))
    if price <= 0:
        raise ValidationError("Price must be greater than 0")

    merged = dict(shared or {})
    merged.update({k: v for k, v in data.items() if not _blank(v)})
    ischannel = to_bool(data.get("ischannel"), POSTED_VALUES)
    now = now_iso()
    doc = {
        "id": new_id(),
        "domainName": domain_name,
        "price": price,
        "status": to_bool(data.get("status"), AVAILABLE_VALUES),
        "ischannel": ischannel,
        "postDateTime": now if ischannel else None,
        "createdAt": now,
        "updatedAt": now,
    }
    for field in INT_FIELDS:
        doc[field] = to_int(data.get(field))
    for field in TEXT_FIELDS:
        doc[field] = str(merged.get(field) or "").strip()
    return doc


def insert_domain(doc: Dict[str, Any]) -> Dict[str, Any]:
    columns = list(doc.keys())
    values = [int(v) if isinstance(v, bool) else v for v in doc.values()]
    conn = get_db(); cur = conn.cursor()
    try:
        cur.execute(
            f"INSERT INTO domains ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            values,
        )
        conn.commit()
    except sqlite3.IntegrityError:
        raise Conflict(f"Domain '{doc['domainName']}' already exists")
    finally:
        conn.close()
    return doc


def create_domain(data: Dict[str, Any]) -> Dict[str, Any]:
    doc = build_domain(data)
    if domain_exists(doc["domainName"]):
        raise Conflict(f"Domain '{doc['domainName']}' already exists")
    doc = insert_domain(doc)
    logger.info("Domain created: %s", doc["domainName"])
    return doc


def create_domains(items: List[Dict[str, Any]], shared: Optional[Dict[str, Any]] = None) -> Tuple[List[dict], List[dict]]:
    """Creates every valid item; failures are collected per index instead of aborting the batch."""
    created: List[dict] = []
    errors: List[dict] = []
    shared = {k: (shared or {}).get(k) for k in SHARED_FIELDS if (shared or {}).get(k)}
    seen = set()
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append({"index": index, "error": "Domain entry must be an object", "domain": item})
            continue
        try:
            doc = build_domain(item, shared)
            if doc["domainName"] in seen or domain_exists(doc["domainName"]):
                raise Conflict(f"Domain '{doc['domainName']}' already exists")
            created.append(insert_domain(doc))
            seen.add(doc["domainName"])
        except (ValidationError, Conflict) as e:
            errors.append({"index": index, "error": e.message, "domain": item})
        except sqlite3.Error as e:
            logger.exception("Domain insert failed at index %s", index)
            errors.append({"index": index, "error": str(e), "domain": item})
    logger.info("Batch create: %s created, %s errors", len(created), len(errors))
    return created, errors


# -------------------------
# Update / delete / transitions
# -------------------------
def _write(domain_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    fields = dict(fields)
    fields["updatedAt"] = now_iso()
    assignments = ", ".join(f"{key} = ?" for key in fields)
    values = [int(v) if isinstance(v, bool) else v for v in fields.values()]
    conn = get_db(); cur = conn.cursor()
    try:
        cur.execute(f"UPDATE domains SET {assignments} WHERE id = ?", values + [domain_id])
        conn.commit()
        changed = cur.rowcount
    except sqlite3.IntegrityError:
        raise Conflict(f"Domain '{fields.get('domainName')}' already exists")
    finally:
        conn.close()
    if not changed:
        raise NotFound("Domain not found")
    return get_domain(domain_id)


def update_domain(domain_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in (data or {}).items() if k in UPDATABLE_FIELDS}
    current = get_domain(domain_id)

    if "domainName" in fields:
        name = normalize_domain_name(fields["domainName"])
        if not is_valid_domain_name(name):
            raise ValidationError(f"Invalid domain name '{fields['domainName']}'")
        owner = find_by_name(name)
        if owner and owner["id"] != domain_id:
            raise Conflict(f"Domain '{name}' already exists")
        fields["domainName"] = name
    for field in INT_FIELDS:
        if field in fields:
            fields[field] = to_int(fields[field])
    if "price" in fields:
        fields["price"] = to_float(fields["price"])
        if fields["price"] <= 0:
            raise ValidationError("Price must be greater than 0")
    for field in TEXT_FIELDS:
        if field in fields:
            fields[field] = str(fields[field] or "").strip()
    if "status" in fields:
        fields["status"] = to_bool(fields["status"], AVAILABLE_VALUES)
    if "ischannel" in fields:
        fields["ischannel"] = to_bool(fields["ischannel"], POSTED_VALUES)
        if fields["ischannel"] != current["ischannel"]:
            fields["postDateTime"] = now_iso() if fields["ischannel"] else None
    return _write(domain_id, fields)


def delete_domain(domain_id: str):
    conn = get_db(); cur = conn.cursor()
    cur.execute("DELETE FROM domains WHERE id = ?", (domain_id,))
    conn.commit()
    deleted = cur.rowcount
    conn.close()
    if not deleted:
        raise NotFound("Domain not found")


def mark_sold(domain_id: str) -> Dict[str, Any]:
    return _write(domain_id, {"status": False})


def mark_available(domain_id: str) -> Dict[str, Any]:
    return _write(domain_id, {"status": True})


def post_to_channel(domain_id: str) -> Dict[str, Any]:
    return _write(domain_id, {"ischannel": True, "postDateTime": now_iso()})


def remove_from_channel(domain_id: str) -> Dict[str, Any]:
    return _write(domain_id, {"ischannel": False, "postDateTime": None})


# -------------------------
# Listing
# -------------------------
def list_domains(status: Optional[str] = None, posted: Optional[str] = None, category: Optional[str] = None,
                 country: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
    clauses, params = [], []
    if status in ("available", "sold"):
        clauses.append("status = ?"); params.append(1 if status == "available" else 0)
    if posted is not None and posted != "":
        clauses.append("ischannel = ?"); params.append(1 if to_bool(posted) else 0)
    if category:
        clauses.append("category = ?"); params.append(category)
    if country:
        clauses.append("country = ?"); params.append(country)
    if search:
        term = search.strip().lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        clauses.append("domainName LIKE ? ESCAPE '\\'"); params.append(f"%{term}%")
    sql = "SELECT * FROM domains"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY createdAt DESC, rowid DESC"
    conn = get_db(); cur = conn.cursor()
    cur.execute(sql, params)
    rows = [_row_to_domain(r) for r in cur.fetchall()]
    conn.close()
    return rows


def list_public_domains() -> List[Dict[str, Any]]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM domains WHERE ischannel = 1 ORDER BY postDateTime DESC, rowid DESC")
    rows = [public_view(_row_to_domain(r)) for r in cur.fetchall()]
    conn.close()
    return rows


def list_all_public() -> List[Dict[str, Any]]:
    return [public_view(doc) for doc in list_domains()]
