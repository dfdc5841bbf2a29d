from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from .models import Directory, IndexEntry, ServiceRecord

logger = logging.getLogger(__name__)


def _read_json_array(path: str) -> List[Any]:
    """
    Read a JSON array from disk. A missing file reads as an empty list,
    anything else that isn't a JSON array raises ValueError naming the path.
    """
    file_path = Path(path)
    if not file_path.exists():
        logger.warning("%s not found; starting with no entries", path)
        return []

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}") from e

    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array in {path}, got {type(data).__name__}")
    return data


def load_directory(path: str = "data/towns.json") -> Directory:
    """
    Load the service directory written by the ingestion script.
    Must raise clear, actionable errors for malformed files.
    """
    raw = _read_json_array(path)
    try:
        return tuple(ServiceRecord.model_validate(r) for r in raw)
    except ValidationError as e:
        raise ValueError(f"Invalid service record in {path}: {e}") from e


def load_index_entries(path: str = "data/index.json") -> Tuple[IndexEntry, ...]:
    raw = _read_json_array(path)
    try:
        return tuple(IndexEntry.model_validate(r) for r in raw)
    except ValidationError as e:
        raise ValueError(f"Invalid index entry in {path}: {e}") from e


def load_directory_with_summary(
    data_path: str = "data/towns.json",
    index_path: str = "data/index.json",
) -> Tuple[Directory, Tuple[IndexEntry, ...], Dict[str, Any]]:
    """
    Same as load_directory, but also loads the index and returns a small
    summary dict for the startup log:
      - total_items
      - total_index_entries
      - towns (distinct, sorted)
      - categories (distinct, sorted)
    """
    directory = load_directory(data_path)
    index = load_index_entries(index_path)

    summary = {
        "total_items": len(directory),
        "total_index_entries": len(index),
        "towns": sorted({r.town for r in directory if r.town}, key=str.casefold),
        "categories": sorted({r.category for r in directory if r.category}, key=str.casefold),
    }
    return directory, index, summary
