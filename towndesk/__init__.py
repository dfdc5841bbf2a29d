"""Towndesk - local services Q&A: keyword retrieval + generative model with a deterministic fallback."""

from .bootstrap import load_directory
from .chat import answer_question

__all__ = ["load_directory", "answer_question"]
