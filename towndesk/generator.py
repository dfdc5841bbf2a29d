from __future__ import annotations

import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .config import DEFAULT_BASE_URL, DEFAULT_MODEL, Settings
from .errors import GenerationError
from .utils import truncate

logger = logging.getLogger(__name__)

_NOT_FOUND_RE = re.compile(r"not\s*found|404", re.IGNORECASE)


class GeneratorConfig(BaseModel):
    """Model binding for the generator. Never mutated: rebinding builds a new one."""

    model_config = ConfigDict(frozen=True)

    model: str = DEFAULT_MODEL
    api_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 20.0

    def with_model(self, model: str) -> "GeneratorConfig":
        return self.model_copy(update={"model": model})

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeneratorConfig":
        return cls(
            model=settings.model_name,
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.generation_timeout,
        )


def is_model_not_found(exc: BaseException) -> bool:
    # Best-effort classification without depending tightly on SDK exception types.
    if getattr(exc, "status_code", None) == 404:
        return True
    texts = [str(exc)]
    for attr in ("status", "status_text", "message"):
        value = getattr(exc, attr, None)
        if isinstance(value, str):
            texts.append(value)
    return any(_NOT_FOUND_RE.search(t) for t in texts)


def _make_client(config: GeneratorConfig) -> Any:
    """
    Build an async client for the Gemini OpenAI-compatible endpoint.
    SDK retries are off: the only retry is the default-model one in AnswerGenerator.
    """
    if not config.api_key:
        raise RuntimeError("GEMINI_API_KEY not set")

    from openai import AsyncOpenAI  # type: ignore

    return AsyncOpenAI(
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.timeout,
        max_retries=0,
    )


async def _call_model(client: Any, *, model: str, prompt: str) -> str:
    """
    Isolated completion call so unit tests can monkeypatch this.
    Returns raw text content from the model.
    """
    resp = await client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": prompt}],
    )
    content = resp.choices[0].message.content
    if content is None:
        raise RuntimeError("Model returned empty content")
    return content


async def _close_client(client: Any) -> None:
    # stub clients in tests have no close()
    close = getattr(client, "close", None)
    if close is not None:
        await close()


class AnswerGenerator:
    def __init__(self, config: GeneratorConfig, client: Any = None) -> None:
        self._config = config
        self._client = client if client is not None else _make_client(config)
        logger.info("Generative model set to: %s", config.model)

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    @property
    def model_name(self) -> str:
        return self._config.model

    @classmethod
    def create(cls, settings: Settings) -> Optional["AnswerGenerator"]:
        """
        Initialize from settings. On failure try once more with DEFAULT_MODEL;
        if that fails too, return None and let every request use the fallback.
        """
        config = GeneratorConfig.from_settings(settings)
        try:
            return cls(config)
        except Exception as e:
            logger.warning("Model init failed for %s: %s", config.model, e)

        try:
            return cls(config.with_model(DEFAULT_MODEL))
        except Exception as e:
            logger.warning("Model init failed for %s: %s; continuing without a model", DEFAULT_MODEL, e)
            return None

    async def _rebind(self, model: str) -> None:
        config = self._config.with_model(model)
        client = _make_client(config)
        old_client = self._client
        self._config, self._client = config, client
        logger.info("Generative model set to: %s", model)
        await _close_client(old_client)

    async def aclose(self) -> None:
        await _close_client(self._client)

    async def _complete(self, prompt: str) -> str:
        # Snapshot the binding so a concurrent rebind can't split model and client.
        config, client = self._config, self._client
        text = await _call_model(client, model=config.model, prompt=prompt)
        if not text.strip():
            raise GenerationError(f"Model {config.model} returned empty content")
        return text.strip()

    async def generate(self, prompt: str) -> str:
        """
        One completion. A "model not found" failure on a non-default model
        rebinds to DEFAULT_MODEL and retries exactly once.
        Raises GenerationError for everything else.
        """
        failed_model = self.model_name
        try:
            return await self._complete(prompt)
        except GenerationError:
            raise
        except Exception as e:
            if not (is_model_not_found(e) and failed_model != DEFAULT_MODEL):
                raise GenerationError(f"{e.__class__.__name__}: {truncate(str(e))}") from e
            logger.warning("Model %s not found; retrying with %s", failed_model, DEFAULT_MODEL)

        try:
            # another request may already have rebound while this call was in flight
            if self.model_name != DEFAULT_MODEL:
                await self._rebind(DEFAULT_MODEL)
            return await self._complete(prompt)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(
                f"Retry with {DEFAULT_MODEL} failed: {e.__class__.__name__}: {truncate(str(e))}"
            ) from e
