"""
Environment-driven settings.

Values come from process environment variables, optionally seeded from a
``.env`` file in the working directory. ``Settings.from_env`` reads them at
call time so tests can monkeypatch the environment before building an app.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    model_name: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    generation_timeout: float = 20.0
    host: str = "0.0.0.0"
    port: int = 8080
    data_path: str = "data/towns.json"
    index_path: str = "data/index.json"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        return cls(
            api_key=(os.getenv("GEMINI_API_KEY") or "").strip(),
            model_name=(os.getenv("MODEL_NAME") or "").strip() or DEFAULT_MODEL,
            base_url=(os.getenv("GEMINI_BASE_URL") or "").strip() or DEFAULT_BASE_URL,
            generation_timeout=_env_float("GENERATION_TIMEOUT", 20.0),
            host=(os.getenv("HOST") or "").strip() or "0.0.0.0",
            port=_env_int("PORT", 8080),
            data_path=(os.getenv("DATA_JSON") or "").strip() or "data/towns.json",
            index_path=(os.getenv("INDEX_JSON") or "").strip() or "data/index.json",
            log_level=(os.getenv("LOG_LEVEL") or "").strip() or "INFO",
        )
