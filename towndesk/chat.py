from __future__ import annotations

import logging
from typing import Optional, Sequence

from .api_schema import AnswerMeta, AnswerResult
from .errors import DataUnavailableError, GenerationError, InputError
from .fallback import compose_fallback
from .generator import AnswerGenerator
from .models import ServiceRecord
from .prompt import build_prompt
from .retrieve import retrieve
from .utils import _trace, trace_enabled, truncate

logger = logging.getLogger(__name__)


async def answer_question(
    question: Optional[str],
    town_pref: Optional[str],
    directory: Sequence[ServiceRecord],
    generator: Optional[AnswerGenerator],
    *,
    debug: bool = False,
) -> AnswerResult:
    """
    Retrieve -> prompt -> model -> fallback.

    Raises InputError for a blank question and DataUnavailableError for an
    empty directory. Model failures never escape: the deterministic
    fallback answers instead.
    """
    tracing = trace_enabled(debug)

    if not question or not question.strip():
        raise InputError("Missing question")
    if not directory:
        raise DataUnavailableError("No data loaded. Run the ingestion script.")

    town = (town_pref or "").strip() or None
    scored = retrieve(question, town, directory)
    prompt = build_prompt(question, town, scored)

    _trace(
        tracing,
        "retrieve.result",
        {
            "town_pref": town,
            "matches": [{"name": s.item.name, "town": s.item.town, "score": s.score} for s in scored],
            "prompt_chars": len(prompt),
        },
    )

    answer: Optional[str] = None
    reason: Optional[str] = None
    if generator is None:
        reason = "no_model_configured"
    else:
        try:
            answer = await generator.generate(prompt)
        except GenerationError as e:
            logger.warning("Generation failed; using fallback: %s", e)
            reason = "generation_error"

    meta = AnswerMeta(
        answered_by="model" if answer else "fallback",
        model=generator.model_name if generator is not None else None,
        reason=reason,
    )
    if not answer:
        answer = compose_fallback(scored, question, town)

    _trace(
        tracing,
        "answer.result",
        {**meta.model_dump(), "answer_preview": truncate(answer)},
    )

    return AnswerResult(answer=answer, sources=[s.item for s in scored], meta=meta)
