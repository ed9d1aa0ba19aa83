# -*- coding: utf-8 -*-
"""
Bulk status transitions keyed on domain names.

Names are normalized and de-duplicated, each one is resolved to its
listing, and the per-listing writes run on a thread pool. The outcome of
every name is reported; one failing name never stops the others.
"""

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Tuple

from . import domains
from .errors import ApiError, NotFound, ValidationError

logger = logging.getLogger(__name__)

ACTIONS: Dict[str, Callable[[str], Any]] = {
    "sold": domains.mark_sold,
    "available": domains.mark_available,
    "post": domains.post_to_channel,
    "unpost": domains.remove_from_channel,
    "delete": domains.delete_domain,
}

UPDATED = "updated"
NOT_FOUND = "notFound"
ERROR = "error"


def unique_names(names: Iterable[Any]) -> List[str]:
    out: List[str] = []
    seen = set()
    for raw in names:
        name = domains.normalize_domain_name(raw)
        if not name or name in seen:
            continue
        seen.add(name)
        out.append(name)
    return out


def _apply(action: str, domain_name: str) -> Tuple[str, str, str]:
    try:
        doc = domains.find_by_name(domain_name)
        if not doc:
            return domain_name, NOT_FOUND, ""
        ACTIONS[action](doc["id"])
        return domain_name, UPDATED, ""
    except NotFound:
        # deleted between lookup and write
        return domain_name, NOT_FOUND, ""
    except (ApiError, sqlite3.Error) as e:
        logger.warning("Bulk %s failed for %s: %s", action, domain_name, e)
        return domain_name, ERROR, str(e)


def run_bulk_action(action: str, names: Iterable[Any], workers: int = 8) -> Dict[str, Any]:
    if action not in ACTIONS:
        raise ValidationError(f"Invalid action '{action}'. Allowed: {', '.join(ACTIONS)}")
    targets = unique_names(names)

    updated: List[str] = []
    not_found: List[str] = []
    errors: List[Dict[str, str]] = []
    if targets:
        with ThreadPoolExecutor(max_workers=max(1, min(workers, len(targets)))) as pool:
            outcomes = list(pool.map(lambda name: _apply(action, name), targets))
        for domain_name, outcome, error in outcomes:
            if outcome == UPDATED:
                updated.append(domain_name)
            elif outcome == NOT_FOUND:
                not_found.append(domain_name)
            else:
                errors.append({"domainName": domain_name, "error": error})

    logger.info("Bulk %s: %s updated, %s not found, %s errors", action, len(updated), len(not_found), len(errors))
    return {
        "action": action,
        "summary": {
            "total": len(targets),
            "updated": len(updated),
            "notFound": len(not_found),
            "errors": len(errors),
        },
        "details": {
            "updated": updated,
            "notFound": not_found,
            "errors": errors,
        },
    }


def mark_domains_sold(names: Iterable[Any], workers: int = 8) -> Dict[str, Any]:
    return run_bulk_action("sold", names, workers=workers)
