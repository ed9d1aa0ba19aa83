# -*- coding: utf-8 -*-
"""
Purchase tickets and their lifecycle.

New -> Read -> Sold / Cancelled. Selling a ticket marks every requested
domain as sold; names that are not listed are reported, not fatal.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .bulk import mark_domains_sold, unique_names
from .db import get_db, new_id, now_iso
from .domains import to_float
from .errors import InvalidTransition, NotFound, ValidationError

logger = logging.getLogger(__name__)

NEW = "New"
READ = "Read"
SOLD = "Sold"
CANCELLED = "Cancelled"
STATUSES = (NEW, READ, SOLD, CANCELLED)

TRANSITIONS = {
    NEW: {READ, SOLD, CANCELLED},
    READ: {SOLD, CANCELLED},
    SOLD: set(),
    CANCELLED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return current == target or target in TRANSITIONS.get(current, set())


def _row_to_ticket(row) -> Dict[str, Any]:
    doc = dict(row)
    doc["request_domains"] = json.loads(doc.get("request_domains") or "[]")
    return doc


def _clean_domain_list(value: Any) -> List[str]:
    if not isinstance(value, list) or not value:
        raise ValidationError("Required fields: customer_id, request_domains (array)")
    names = unique_names(v for v in value if isinstance(v, str))
    if not names:
        raise ValidationError("request_domains must contain at least one domain name")
    return names


def get_ticket(ticket_id: str) -> Dict[str, Any]:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM tickets WHERE id = ?", (ticket_id,))
    row = cur.fetchone()
    conn.close()
    if not row:
        raise NotFound("Ticket not found")
    return _row_to_ticket(row)


def list_tickets(status: Optional[str] = None) -> List[Dict[str, Any]]:
    conn = get_db(); cur = conn.cursor()
    if status:
        cur.execute("SELECT * FROM tickets WHERE status = ? ORDER BY request_time DESC, rowid DESC", (status,))
    else:
        cur.execute("SELECT * FROM tickets ORDER BY request_time DESC, rowid DESC")
    rows = [_row_to_ticket(r) for r in cur.fetchall()]
    conn.close()
    return rows


def count_new() -> int:
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT COUNT(*) FROM tickets WHERE status = ?", (NEW,))
    total = cur.fetchone()[0]
    conn.close()
    return total


def create_ticket(customer_id: Any, request_domains: Any, price: Any = None,
                  status: str = NEW, source: str = "web") -> Dict[str, Any]:
    if customer_id is None or str(customer_id).strip() == "":
        raise ValidationError("Required fields: customer_id, request_domains (array)")
    names = _clean_domain_list(request_domains)
    if status not in STATUSES:
        raise ValidationError(f"Invalid status '{status}'. Allowed: {', '.join(STATUSES)}")
    now = now_iso()
    doc = {
        "id": new_id(),
        "customer_id": str(customer_id).strip(),
        "request_domains": names,
        "request_time": now,
        "price": to_float(price),
        "status": status,
        "source": source,
        "createdAt": now,
        "updatedAt": now,
    }
    conn = get_db(); cur = conn.cursor()
    cur.execute(
        "INSERT INTO tickets (id, customer_id, request_domains, request_time, price, status, source, createdAt, updatedAt) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (doc["id"], doc["customer_id"], json.dumps(names), now, doc["price"], status, source, now, now),
    )
    conn.commit(); conn.close()
    logger.info("Ticket %s created for customer %s (%s domains, %s)", doc["id"], doc["customer_id"], len(names), source)
    return doc


def _write(ticket_id: str, fields: Dict[str, Any]):
    fields = dict(fields)
    fields["updatedAt"] = now_iso()
    if "request_domains" in fields:
        fields["request_domains"] = json.dumps(fields["request_domains"])
    assignments = ", ".join(f"{key} = ?" for key in fields)
    conn = get_db(); cur = conn.cursor()
    cur.execute(f"UPDATE tickets SET {assignments} WHERE id = ?", list(fields.values()) + [ticket_id])
    conn.commit(); conn.close()


def _sync_domains(ticket: Dict[str, Any], workers: int) -> Dict[str, Any]:
    names = ticket.get("request_domains") or []
    results = {"updated": [], "notFound": [], "errors": []}
    if names:
        results = mark_domains_sold(names, workers=workers)["details"]
    return {
        "totalDomains": len(names),
        "updated": len(results["updated"]),
        "notFound": len(results["notFound"]),
        "errors": len(results["errors"]),
        "details": results,
    }


def set_status(ticket_id: str, status: str, price: Any = None, workers: int = 8) -> Dict[str, Any]:
    """
    Moves a ticket to `status`. Returns {"ticket": ..., "domainUpdates": ...};
    domainUpdates is only present when the ticket was sold.
    """
    if status not in STATUSES:
        raise ValidationError(f"Invalid status '{status}'. Allowed: {', '.join(STATUSES)}")
    ticket = get_ticket(ticket_id)
    if not can_transition(ticket["status"], status):
        raise InvalidTransition(ticket["status"], status)

    fields: Dict[str, Any] = {"status": status}
    if status == SOLD:
        fields["price"] = to_float(price) if price is not None else ticket["price"]
    _write(ticket_id, fields)
    result: Dict[str, Any] = {"ticket": get_ticket(ticket_id)}
    if status == SOLD:
        result["domainUpdates"] = _sync_domains(result["ticket"], workers)
    logger.info("Ticket %s: %s -> %s", ticket_id, ticket["status"], status)
    return result


def mark_read(ticket_id: str) -> Dict[str, Any]:
    ticket = get_ticket(ticket_id)
    if ticket["status"] != NEW:
        return ticket
    return set_status(ticket_id, READ)["ticket"]


def mark_sold(ticket_id: str, price: Any = None, workers: int = 8) -> Dict[str, Any]:
    return set_status(ticket_id, SOLD, price=price, workers=workers)


def mark_cancelled(ticket_id: str) -> Dict[str, Any]:
    return set_status(ticket_id, CANCELLED)["ticket"]


def update_ticket(ticket_id: str, data: Dict[str, Any], workers: int = 8) -> Dict[str, Any]:
    """Validates every field and the status move first, then writes them together."""
    data = data or {}
    ticket = get_ticket(ticket_id)
    status = data.get("status")
    if status is not None:
        if status not in STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Allowed: {', '.join(STATUSES)}")
        if not can_transition(ticket["status"], status):
            raise InvalidTransition(ticket["status"], status)

    fields: Dict[str, Any] = {}
    if "customer_id" in data:
        if data["customer_id"] is None or str(data["customer_id"]).strip() == "":
            raise ValidationError("customer_id cannot be empty")
        fields["customer_id"] = str(data["customer_id"]).strip()
    if "request_domains" in data:
        fields["request_domains"] = _clean_domain_list(data["request_domains"])
    if "price" in data:
        fields["price"] = to_float(data["price"])
    if status is not None:
        fields["status"] = status
    if fields:
        _write(ticket_id, fields)

    result: Dict[str, Any] = {"ticket": get_ticket(ticket_id)}
    if status == SOLD:
        result["domainUpdates"] = _sync_domains(result["ticket"], workers)
    if status is not None and status != ticket["status"]:
        logger.info("Ticket %s: %s -> %s", ticket_id, ticket["status"], status)
    return result


def delete_ticket(ticket_id: str):
    conn = get_db(); cur = conn.cursor()
    cur.execute("DELETE FROM tickets WHERE id = ?", (ticket_id,))
    conn.commit()
    deleted = cur.rowcount
    conn.close()
    if not deleted:
        raise NotFound("Ticket not found")


def tickets_for_customer(customer_id: Any, domain_names: List[Any]) -> List[Dict[str, Any]]:
    """Tickets of `customer_id` that ask for any of `domain_names`, newest first, with the overlap."""
    wanted = set(unique_names(domain_names))
    conn = get_db(); cur = conn.cursor()
    cur.execute("SELECT * FROM tickets WHERE customer_id = ? ORDER BY request_time DESC, rowid DESC", (str(customer_id).strip(),))
    rows = [_row_to_ticket(r) for r in cur.fetchall()]
    conn.close()
    out = []
    for ticket in rows:
        matching = [name for name in ticket["request_domains"] if name in wanted]
        if matching:
            ticket["matchingDomains"] = matching
            out.append(ticket)
    return out
