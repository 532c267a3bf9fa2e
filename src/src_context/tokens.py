from __future__ import annotations

from typing import ClassVar

import tiktoken

from src_context.logging import logger

ENCODING_NAME = "cl100k_base"
FALLBACK_ENCODING_NAME = "p50k_base"


class Tokenizer:
    """Lazily loaded BPE encoding shared by the whole process."""

    _encoding: ClassVar[tiktoken.Encoding | None] = None
    _unavailable: ClassVar[bool] = False

    @classmethod
    def get_encoding(cls) -> tiktoken.Encoding | None:
        if cls._encoding is None and not cls._unavailable:
            for name in (ENCODING_NAME, FALLBACK_ENCODING_NAME):
                try:
                    cls._encoding = tiktoken.get_encoding(name)
                    break
                except Exception as e:  # noqa: BLE001
                    logger.warning("Could not load tiktoken encoding %s: %s", name, e)
            else:
                # Encoding files are fetched on first use; offline runs estimate instead.
                cls._unavailable = True
        return cls._encoding

    @staticmethod
    def count(text: str) -> int:
        """Count the tokens of `text`.

        Falls back to the ~4 characters per token estimate when no encoding can be
        loaded, so counts stay deterministic within a run either way.

        Args:
            text (str): the text to tokenize

        Returns:
            int: the number of tokens
        """
        encoding = Tokenizer.get_encoding()
        if encoding is None:
            return len(text) // 4
        return len(encoding.encode(text, disallowed_special=()))


def count_tokens(text: str) -> int:
    return Tokenizer.count(text)
