from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pyperclip
import pytest

from src_context import cli

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_parse_args_maps_flags_to_settings(tmp_path: Path) -> None:
    settings = cli.parse_args(
        [
            "src",
            "tests",
            "--base-dir",
            str(tmp_path),
            "--ignore",
            "*.log",
            "--ignore",
            "tmp/**",
            "--ignore-file",
            ".myignore",
            "--keep-whitespace",
            "--keep-comments",
            "--token-budget",
            "100k",
            "--no-default-ignores",
            "--max-file-kb",
            "256",
            "-o",
            "ctx.md",
        ],
    )

    assert settings.base_dir == tmp_path.resolve()
    assert settings.input_paths == ["src", "tests"]
    assert settings.cli_ignores == ["*.log", "tmp/**"]
    assert settings.custom_ignore_file == ".myignore"
    assert settings.remove_whitespace is False
    assert settings.keep_comments is True
    assert settings.token_budget == 100_000
    assert settings.no_default_ignores is True
    assert settings.max_file_kb == 256
    assert settings.output == Path("ctx.md")


@pytest.mark.unit
def test_parse_args_defaults(tmp_path: Path) -> None:
    settings = cli.parse_args(["-C", str(tmp_path)])

    assert settings.input_paths == []
    assert settings.token_budget is None
    assert settings.remove_whitespace is True
    assert settings.clip is False


@pytest.mark.unit
@pytest.mark.parametrize("argv", [["--token-budget", "lots"], ["--max-file-kb", "0"]])
def test_invalid_arguments_exit_with_usage_error(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(argv)

    assert excinfo.value.code == 2


@pytest.mark.unit
def test_emit_copies_to_clipboard(mocker: MockerFixture, tmp_path: Path) -> None:
    copy = mocker.patch.object(cli.pyperclip, "copy")
    settings = cli.parse_args(["-C", str(tmp_path), "--clip"])

    cli.emit(settings, "context")

    copy.assert_called_once_with("context")


@pytest.mark.unit
def test_emit_falls_back_to_stdout_without_clipboard(
    mocker: MockerFixture,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    mocker.patch.object(cli.pyperclip, "copy", side_effect=pyperclip.PyperclipException("no clipboard"))
    settings = cli.parse_args(["-C", str(tmp_path), "--clip"])

    cli.emit(settings, "context")

    assert capsys.readouterr().out == "context\n"


@pytest.mark.unit
def test_emit_writes_relative_output_under_base_dir(tmp_path: Path) -> None:
    settings = cli.parse_args(["-C", str(tmp_path), "-o", "out/ctx.md"])

    cli.emit(settings, "context")

    assert (tmp_path / "out" / "ctx.md").read_text(encoding="utf-8") == "context"


@pytest.mark.unit
def test_main_reports_failure(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch.object(cli, "run_build", side_effect=RuntimeError("boom"))

    assert cli.main(["-C", str(tmp_path)]) == 1


@pytest.mark.unit
def test_main_starts_watch_after_first_build(mocker: MockerFixture, tmp_path: Path) -> None:
    run_build = mocker.patch.object(cli, "run_build")
    watch = mocker.patch.object(cli, "watch")

    assert cli.main(["-C", str(tmp_path), "--watch"]) == 0
    run_build.assert_called_once()
    watch.assert_called_once()
