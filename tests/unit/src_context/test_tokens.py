from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from src_context.tokens import Tokenizer, count_tokens

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_fallback_estimate_without_encoding() -> None:
    assert count_tokens("") == 0
    assert count_tokens("abcdefgh") == 2


@pytest.mark.unit
def test_count_uses_loaded_encoding(mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch) -> None:
    encoding = mocker.Mock()
    encoding.encode.return_value = [1, 2, 3]
    monkeypatch.setattr(Tokenizer, "_encoding", encoding)

    assert count_tokens("<|endoftext|> hi") == 3
    encoding.encode.assert_called_once_with("<|endoftext|> hi", disallowed_special=())


@pytest.mark.unit
def test_get_encoding_tries_fallback_name(mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Tokenizer, "_unavailable", False)
    fallback = mocker.Mock()
    get_encoding = mocker.patch(
        "src_context.tokens.tiktoken.get_encoding",
        side_effect=[ValueError("offline"), fallback],
    )

    assert Tokenizer.get_encoding() is fallback
    assert [c.args[0] for c in get_encoding.call_args_list] == ["cl100k_base", "p50k_base"]


@pytest.mark.unit
def test_get_encoding_gives_up_when_nothing_loads(mocker: MockerFixture, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Tokenizer, "_unavailable", False)
    mocker.patch("src_context.tokens.tiktoken.get_encoding", side_effect=OSError("offline"))

    assert Tokenizer.get_encoding() is None
    assert Tokenizer._unavailable is True  # noqa: SLF001
    assert count_tokens("abcd") == 1
