from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from src_context.tokens import Tokenizer

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch: pytest.MonkeyPatch) -> None:
    """Count tokens as len(text) // 4 so tests neither download encodings nor depend on them."""
    monkeypatch.setattr(Tokenizer, "_encoding", None)
    monkeypatch.setattr(Tokenizer, "_unavailable", True)


@pytest.fixture
def make_files(tmp_path: Path) -> Callable[[Mapping[str, str | bytes]], Path]:
    """Write a mapping of relative path -> content under `tmp_path` and return `tmp_path`."""

    def _make(files: Mapping[str, str | bytes]) -> Path:
        for rel, content in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8", newline="")
        return tmp_path

    return _make
