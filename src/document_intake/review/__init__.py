"""Confidence routing and human review."""

from .human_loop import start_human_review
from .routing import requires_human_review, summarize_confidence

__all__ = [
    "requires_human_review",
    "start_human_review",
    "summarize_confidence",
]
