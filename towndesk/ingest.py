"""
Directory ingestion: CSV -> JSON.

This module provides functions to:
- Read the services CSV (town,category,name,address,phone,hours,area,url,notes)
- Sanitize each row into a ServiceRecord
- Drop rows that are not publicly verifiable (missing town, category or url)
- Write the directory JSON and a parallel placeholder index (vectors are null)
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .logging_config import setup_logging
from .models import IndexEntry, ServiceRecord
from .utils import clean

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("town", "category", "name", "address", "phone", "hours", "area", "url", "notes")

DEFAULT_CSV = "data/towns.csv"
DEFAULT_JSON = "data/towns.json"
DEFAULT_INDEX = "data/index.json"


@dataclass(frozen=True)
class IngestSummary:
    rows_read: int
    items_written: int
    index_entries_written: int
    json_path: str
    index_path: str

    @property
    def rows_dropped(self) -> int:
        return self.rows_read - self.items_written


def read_rows(csv_path: str) -> List[Dict[str, Any]]:
    """
    Read the CSV into a list of dicts keyed by header.

    Rows whose every cell is blank are skipped.

    Raises:
        FileNotFoundError: If the CSV doesn't exist
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Services CSV not found: {csv_path}. "
            f"Create and save your CSV first."
        )

    # utf-8-sig drops the BOM spreadsheet exports like to add
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        rows = []
        for row in reader:
            # extra cells land under the None key as a list
            if not any(clean(v) for k, v in row.items() if k is not None):
                continue
            rows.append(row)
    return rows


def split_area(raw: Any) -> List[str]:
    return [part.strip() for part in clean(raw).split(",") if part.strip()]


def sanitize_row(row: Dict[str, Any]) -> ServiceRecord:
    """Trim every known column; missing columns become empty strings."""
    return ServiceRecord(
        town=clean(row.get("town")),
        category=clean(row.get("category")),
        name=clean(row.get("name")),
        address=clean(row.get("address")),
        phone=clean(row.get("phone")),
        hours=clean(row.get("hours")),
        area=split_area(row.get("area")),
        url=clean(row.get("url")),
        notes=clean(row.get("notes")),
    )


def is_public(record: ServiceRecord) -> bool:
    """Public info must be externally verifiable: town, category and url are required."""
    return bool(record.town and record.category and record.url)


def sanitize_rows(rows: Iterable[Dict[str, Any]]) -> List[ServiceRecord]:
    return [rec for rec in (sanitize_row(r) for r in rows) if is_public(rec)]


def build_index_entries(items: Iterable[ServiceRecord]) -> List[IndexEntry]:
    return [IndexEntry(item=it, vector=None) for it in items]


def _write_json(path: Path, obj: Any) -> None:
    path.write_text(json.dumps(obj, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")


def ingest(
    csv_path: str = DEFAULT_CSV,
    json_out: str = DEFAULT_JSON,
    index_out: str = DEFAULT_INDEX,
) -> IngestSummary:
    """
    Run the full CSV -> JSON conversion.

    Args:
        csv_path: Input CSV
        json_out: Where to write the directory array
        index_out: Where to write the placeholder index array

    Returns:
        IngestSummary with row/item counts and the output paths

    Raises:
        FileNotFoundError: If the CSV doesn't exist
    """
    logger.info("Ingestion started: %s", csv_path)
    rows = read_rows(csv_path)
    items = sanitize_rows(rows)

    json_path = Path(json_out)
    index_path = Path(index_out)
    json_path.parent.mkdir(parents=True, exist_ok=True)
    index_path.parent.mkdir(parents=True, exist_ok=True)

    _write_json(json_path, [it.model_dump() for it in items])
    logger.info("Wrote %d items to %s (%d rows dropped)", len(items), json_path, len(rows) - len(items))

    entries = build_index_entries(items)
    _write_json(index_path, [e.model_dump() for e in entries])
    logger.info("Wrote %d index entries to %s (null vector means no embedding yet)", len(entries), index_path)

    return IngestSummary(
        rows_read=len(rows),
        items_written=len(items),
        index_entries_written=len(entries),
        json_path=str(json_path),
        index_path=str(index_path),
    )


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Convert the services CSV into the JSON directory used by the API.")
    p.add_argument("--csv", dest="csv_path", default=DEFAULT_CSV, help=f"Input CSV (default: {DEFAULT_CSV})")
    p.add_argument("--out", dest="json_out", default=DEFAULT_JSON, help=f"Directory JSON (default: {DEFAULT_JSON})")
    p.add_argument("--index", dest="index_out", default=DEFAULT_INDEX, help=f"Index JSON (default: {DEFAULT_INDEX})")
    args = p.parse_args(argv)

    setup_logging()
    try:
        ingest(csv_path=args.csv_path, json_out=args.json_out, index_out=args.index_out)
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
