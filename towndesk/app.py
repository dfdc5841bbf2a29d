"""
HTTP surface for the services assistant.

``create_app`` loads the directory and the model binding once and attaches
them to ``app.state``; handlers only read them. Run with::

    towndesk-serve --port 8080

or through uvicorn's factory mode::

    uvicorn towndesk.app:create_app --factory
"""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_schema import AskRequest, AskResponse, ErrorResponse, HealthResponse
from .bootstrap import load_directory, load_directory_with_summary, load_index_entries
from .chat import answer_question
from .config import Settings
from .errors import DataUnavailableError, InputError
from .generator import AnswerGenerator
from .logging_config import setup_logging
from .models import IndexEntry, ServiceRecord

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def create_app(
    settings: Optional[Settings] = None,
    *,
    directory: Optional[Sequence[ServiceRecord]] = None,
    index: Optional[Sequence[IndexEntry]] = None,
    generator: Optional[AnswerGenerator] = _UNSET,
) -> FastAPI:
    """
    Build the FastAPI app. Anything not passed in is loaded from `settings`
    (read from the environment when omitted).
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    if directory is None and index is None:
        directory, index, summary = load_directory_with_summary(settings.data_path, settings.index_path)
        logger.info(
            "Loaded data items: %d, index entries: %d, towns: %d",
            summary["total_items"],
            summary["total_index_entries"],
            len(summary["towns"]),
        )
    else:
        # only read what the caller didn't supply
        if directory is None:
            directory = load_directory(settings.data_path)
        if index is None:
            index = load_index_entries(settings.index_path)
        logger.info("Loaded data items: %d, index entries: %d", len(directory), len(index))
    if generator is _UNSET:
        generator = AnswerGenerator.create(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if app.state.generator is not None:
            await app.state.generator.aclose()

    app = FastAPI(title="Towndesk", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    app.state.settings = settings
    app.state.directory = tuple(directory)
    app.state.index = tuple(index)
    app.state.generator = generator
    # reported by /health when no generator could be initialized
    app.state.model_name = settings.model_name

    @app.exception_handler(InputError)
    async def _input_error(_request: Request, exc: InputError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(DataUnavailableError)
    async def _data_unavailable(_request: Request, exc: DataUnavailableError) -> JSONResponse:
        return _error(503, str(exc))

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        state = request.app.state
        return HealthResponse(
            ok=True,
            data=len(state.directory),
            index=len(state.index),
            model=state.generator.model_name if state.generator is not None else state.model_name,
        )

    @app.post("/api/ask", response_model=AskResponse)
    async def ask(request: Request) -> Any:
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        body = AskRequest.model_validate(payload if isinstance(payload, dict) else {})

        state = request.app.state
        try:
            result = await answer_question(body.question, body.town_pref, state.directory, state.generator)
        except (InputError, DataUnavailableError):
            raise
        except Exception:
            logger.exception("Handler error")
            return _error(500, "Server error")
        return AskResponse(answer=result.answer, sources=result.sources)

    return app


def main(argv: Optional[list[str]] = None) -> int:
    settings = Settings.from_env()
    p = argparse.ArgumentParser(description="Serve the local services assistant API.")
    p.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    p.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")
    args = p.parse_args(argv)

    app = create_app(settings)
    logger.info("API running on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
