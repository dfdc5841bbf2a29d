from __future__ import annotations

from typing import List, Optional

from .models import ScoredRecord, ServiceRecord

NO_MATCHES = "(no matches)"

GUARDRAILS = (
    "You are a warm, calm assistant for seniors and caregivers.\n"
    "Be kind, simple, and concise: reply with 2-4 short sentences in plain language.\n"
    'Only use phone numbers, addresses, hours, and links that appear in the "Local Directory" below.\n'
    "If a detail is missing, say you don't have it and suggest visiting the provided link.\n"
    "Do not ask the user to open or browse any other website.\n"
    "If the user describes an emergency, tell them to call 911 or their local emergency number right away."
)

CLOSING_INSTRUCTION = (
    "Write a short paragraph (not a list). Mention up to 2 relevant services. "
    "Avoid repeating the exact same phrasing each time."
)

PROMPT_TEMPLATE = """{guardrails}

User question: \"\"\"{question}\"\"\"
{town_line}
Local Directory:
{directory}
{closing}"""


def format_record_line(it: ServiceRecord) -> str:
    """One directory line. Empty optional fields are left out, phone/hours default to N/A."""
    line = f"- [{it.category}] {it.name or '(name not provided)'} - Phone: {it.phone or 'N/A'}; "
    if it.address:
        line += f"Address: {it.address}; "
    line += f"Hours: {it.hours or 'N/A'}; Area: {', '.join(it.area or [])}; "
    if it.url:
        line += f"Link: {it.url}; "
    if it.notes:
        line += f"Notes: {it.notes}"
    return line.rstrip()


def build_prompt(question: str, town_filter: Optional[str], scored: List[ScoredRecord]) -> str:
    lines = [format_record_line(s.item) for s in scored]
    town_line = f"Preferred town: {town_filter}\n" if town_filter else ""
    return PROMPT_TEMPLATE.format(
        guardrails=GUARDRAILS,
        question=question,
        town_line=town_line,
        directory="\n".join(lines) or NO_MATCHES,
        closing=CLOSING_INSTRUCTION,
    ).strip()
