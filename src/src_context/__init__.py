"""src_context: pack a project's source files into one token-budgeted LLM context."""

from __future__ import annotations

__version__ = "0.2.0"

from src_context.core import generate_context, get_file_stats  # noqa: E402

__all__ = ["__version__", "generate_context", "get_file_stats"]
