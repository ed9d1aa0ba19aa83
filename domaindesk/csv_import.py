# -*- coding: utf-8 -*-
"""
CSV bulk import of domain listings.

Every row is validated on its own; a bad row lands in `errors`, a row
whose normalized name is already stored (or appeared earlier in the same
file) lands in `duplicates`, and the rest are inserted. Importing the same
file twice therefore creates nothing the second time.
"""

import csv
import io
import logging
import sqlite3
from typing import Any, Dict, IO, List, Optional, Union

from .domains import build_domain, domain_exists, insert_domain, is_valid_domain_name, normalize_domain_name
from .errors import Conflict, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["Domain Name", "Country", "Category", "Price"]
EXPECTED_FORMAT = ("Domain Name, Country, Category, DA, PA, SS, Backlinks, Price, Status, Panel Link, "
                   "Panel Username, Panel Password, Shell Link, Hosting Link, Hosting Username, "
                   "Hosting Password, Ischannel")

# CSV header -> document field
COLUMN_MAP = {
    "Domain Name": "domainName",
    "Country": "country",
    "Category": "category",
    "DA": "da",
    "PA": "pa",
    "SS": "ss",
    "Backlinks": "backlink",
    "Price": "price",
    "Status": "status",
    "Panel Link": "panelLink",
    "Panel Username": "panelUsername",
    "Panel Password": "panelPassword",
    "Shell Link": "goodLink",
    "Hosting Link": "hostingLink",
    "Hosting Username": "hostingUsername",
    "Hosting Password": "hostingPassword",
    "Ischannel": "ischannel",
}


def _cell(row: Dict[str, Any], column: str) -> str:
    return (row.get(column) or "").strip()


def read_rows(source: Union[bytes, str, IO]) -> List[Dict[str, str]]:
    """Parses the upload into header-keyed rows. Raises ValidationError on bad encoding or missing columns."""
    if hasattr(source, "read"):
        source = source.read()
    if isinstance(source, bytes):
        try:
            source = source.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV file must be UTF-8 encoded")
    reader = csv.DictReader(io.StringIO(source, newline=""))
    header = [(name or "").strip() for name in (reader.fieldnames or [])]
    reader.fieldnames = header
    missing = [col for col in REQUIRED_COLUMNS if col not in header]
    if missing:
        raise ValidationError(
            f"Invalid CSV format. Missing columns: {', '.join(missing)}",
            expectedFormat=EXPECTED_FORMAT,
        )
    rows = []
    for row in reader:
        # cells past the header end up under the None key
        rows.append({k: v for k, v in row.items() if k is not None})
    return rows


def row_to_payload(row: Dict[str, str]) -> Dict[str, Any]:
    return {field: _cell(row, column) for column, field in COLUMN_MAP.items()}


def import_rows(rows: List[Dict[str, str]]) -> Dict[str, Any]:
    successful: List[dict] = []
    duplicates: List[dict] = []
    errors: List[dict] = []
    seen = set()

    for index, row in enumerate(rows):
        line = index + 1
        raw_name = _cell(row, "Domain Name")
        if not raw_name:
            errors.append({"row": line, "error": "Domain Name is required", "data": row})
            continue
        domain_name = normalize_domain_name(raw_name)
        if not is_valid_domain_name(domain_name):
            errors.append({"row": line, "error": f"Invalid domain name '{raw_name}'", "data": row})
            continue
        if domain_name in seen or domain_exists(domain_name):
            duplicates.append({"row": line, "domainName": domain_name, "data": row})
            continue
        if not _cell(row, "Country") or not _cell(row, "Category") or not _cell(row, "Price"):
            errors.append({"row": line, "error": "Missing required fields (Country, Category, or Price)", "data": row})
            continue

        try:
            doc = insert_domain(build_domain(row_to_payload(row)))
        except ValidationError as e:
            errors.append({"row": line, "error": e.message, "data": row})
            continue
        except Conflict:
            # inserted by someone else between the lookup and the insert
            duplicates.append({"row": line, "domainName": domain_name, "data": row})
            continue
        except sqlite3.Error as e:
            logger.exception("CSV row %s failed to insert", line)
            errors.append({"row": line, "error": str(e), "data": row})
            continue
        seen.add(domain_name)
        successful.append({"row": line, "domainName": domain_name, "id": doc["id"]})

    logger.info("CSV import: %s rows, %s created, %s duplicates, %s errors",
                len(rows), len(successful), len(duplicates), len(errors))
    return {
        "summary": {
            "totalRows": len(rows),
            "successful": len(successful),
            "duplicates": len(duplicates),
            "errors": len(errors),
        },
        "details": {
            "successful": successful,
            "duplicates": duplicates,
            "errors": errors,
        },
    }


def import_domains_csv(source: Optional[Union[bytes, str, IO]]) -> Dict[str, Any]:
    if source is None:
        raise ValidationError("No CSV file uploaded")
    return import_rows(read_rows(source))
