from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ServiceRecord


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = None
    town_pref: Optional[str] = Field(default=None, alias="townPref")

    @field_validator("question", "town_pref", mode="before")
    @classmethod
    def _strings_only(cls, v: Any) -> Optional[str]:
        # Clients send all sorts of things; anything that isn't text counts as absent.
        return v if isinstance(v, str) else None


class AnswerMeta(BaseModel):
    answered_by: Literal["model", "fallback"]
    model: Optional[str] = None
    reason: Optional[str] = None


class AnswerResult(BaseModel):
    answer: str
    sources: List[ServiceRecord] = Field(default_factory=list)
    meta: AnswerMeta


class AskResponse(BaseModel):
    answer: str
    sources: List[ServiceRecord] = Field(default_factory=list)


class HealthResponse(BaseModel):
    ok: bool = True
    data: int
    index: int
    model: str


class ErrorResponse(BaseModel):
    error: str
