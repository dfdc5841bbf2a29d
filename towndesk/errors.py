from __future__ import annotations


class TowndeskError(Exception):
    """Base class for errors raised by the answer pipeline."""


class InputError(TowndeskError):
    """The request is missing a usable question (HTTP 400)."""


class DataUnavailableError(TowndeskError):
    """The service directory is empty; ingestion has not been run (HTTP 503)."""


class GenerationError(TowndeskError):
    """The generative model could not produce an answer. Always absorbed by the fallback."""
