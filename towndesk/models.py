from __future__ import annotations

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ServiceRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    town: str = ""
    category: str = ""
    name: str = ""
    address: str = ""
    phone: str = ""
    hours: str = ""
    area: List[str] = Field(default_factory=list)  # comma-split service area
    url: str = ""
    notes: str = ""


class ScoredRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: ServiceRecord
    score: int = Field(ge=0)


class IndexEntry(BaseModel):
    item: ServiceRecord
    vector: None = None  # reserved for embedding search


# Loaded once at startup, shared read-only by every request.
Directory = Tuple[ServiceRecord, ...]
