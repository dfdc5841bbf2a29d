from __future__ import annotations

from typing import Iterable, List, Optional

from .models import ScoredRecord, ServiceRecord
from .utils import tokenize

MAX_RESULTS = 2
FALLBACK_SCORE = 1


def _haystack(record: ServiceRecord) -> str:
    parts = (record.town, record.category, record.name, record.address, record.notes)
    return " ".join(p for p in parts if p).lower()


def town_matches(record: ServiceRecord, town_filter: Optional[str]) -> bool:
    tp = (town_filter or "").lower()
    return not tp or tp in (record.town or "").lower()


def score_record(tokens: List[str], record: ServiceRecord) -> int:
    """Number of tokens found as substrings of the record text. Duplicate tokens count again."""
    hay = _haystack(record)
    return sum(1 for t in tokens if t in hay)


def retrieve(
    question: Optional[str],
    town_filter: Optional[str],
    directory: Iterable[ServiceRecord],
    *,
    limit: int = MAX_RESULTS,
) -> List[ScoredRecord]:
    """
    Keyword retrieval over the in-memory directory.

    Returns at most `limit` records ranked by token overlap, ties kept in
    directory order. When nothing overlaps, the first `limit` town-filtered
    records come back with a fixed score of 1, so a non-empty (filtered)
    directory never yields zero sources.
    """
    tokens = tokenize(question)
    candidates = [r for r in directory if town_matches(r, town_filter)]

    scored: List[ScoredRecord] = []
    for record in candidates:
        score = score_record(tokens, record)
        if score > 0:
            scored.append(ScoredRecord(item=record, score=score))

    if not scored:
        return [ScoredRecord(item=r, score=FALLBACK_SCORE) for r in candidates[:limit]]

    # sorted() is stable, so equal scores keep directory order
    return sorted(scored, key=lambda s: s.score, reverse=True)[:limit]
