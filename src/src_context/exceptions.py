from dataclasses import dataclass


@dataclass(frozen=True)
class SrcContextError(Exception):
    """Base exception for errors in the src_context package."""


@dataclass(frozen=True)
class CommentStripError(SrcContextError):
    """Raised when the generic comment stripper cannot make sense of a file."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"cannot strip comments from {self.path}: {self.reason}"


@dataclass(frozen=True)
class InvalidTokenBudgetError(SrcContextError):
    """Raised when a token budget string cannot be parsed."""

    value: str
    message: str = "Expected a non-negative integer, optionally suffixed with k or M (e.g. 8000, 100k, 2M)."

    def __str__(self) -> str:
        return f"invalid token budget {self.value!r}. {self.message}"
