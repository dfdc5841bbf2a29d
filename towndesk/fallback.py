from __future__ import annotations

from typing import List, Optional

from .models import ScoredRecord


def compose_fallback(scored: List[ScoredRecord], question: str, town_filter: Optional[str]) -> str:
    """
    Deterministic answer used when the model is unavailable or fails.
    Only the top-ranked record is described. `question` is accepted for
    signature parity with the prompt builder and is not used.
    """
    if not scored:
        where = f" in {town_filter}" if town_filter else ""
        return (
            f"I couldn't find a match{where}. "
            "Please try a different town or category, or use the links in the sources below."
        )

    it = scored[0].item
    parts = [f"{it.name} serves {it.town}."]
    if it.notes:
        parts.append(it.notes)
    if it.hours:
        parts.append(f"Hours: {it.hours}.")
    if it.address:
        parts.append(f"Address: {it.address}.")
    parts.append(f"Phone: {it.phone or 'N/A'}.")
    if it.url:
        parts.append(f"More info: {it.url}")
    return " ".join(parts)
