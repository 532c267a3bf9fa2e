"""
src_context: pack a project's source files into one LLM-ready context.

Overview
--------
The context is a directory tree of the selected files followed by one fenced
Markdown block per file. Along the way:

- files are filtered by built-in, `.contextignore` and `--ignore` patterns,
- files matching `.contextminify` are replaced by a one-line placeholder,
- binary and SVG files become placeholders, large text files are sampled,
- comments are stripped and whitespace normalized unless told otherwise,
- with `--token-budget`, files from `.contextpriority` are packed first and
  the smallest remaining files fill what is left.

The result goes to stdout, a file (`--output`) or the clipboard (`--clip`); a
build summary is printed to stderr.

Usage
-----
    src-context src tests --output context.md
    src-context --clip --token-budget 100k
    src-context --show-tokens
    src-context src --watch --output context.md
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pyperclip
from dotenv import load_dotenv
from pydantic import ValidationError

from src_context import __version__
from src_context.budget import parse_token_budget
from src_context.config import (
    DEFAULT_CUSTOM_IGNORE_FILE,
    DEFAULT_MAX_FILE_KB,
    DEFAULT_MINIFY_FILE,
    DEFAULT_PRIORITY_FILE,
)
from src_context.core import generate_context, get_file_stats
from src_context.exceptions import InvalidTokenBudgetError
from src_context.logging import logger, setup_logging
from src_context.output_construction import build_summary_report, build_token_table
from src_context.settings import ENV_FILE, LOG_FILE_ENV_VAR, Settings
from src_context.watch import watch

if TYPE_CHECKING:
    from collections.abc import Sequence


def token_budget_arg(value: str) -> int:
    try:
        return parse_token_budget(value)
    except InvalidTokenBudgetError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="src-context",
        description="Pack source files into a single token-budgeted context for LLMs.",
    )
    p.add_argument("paths", nargs="*", help="Files or directories to include (default: current directory).")
    p.add_argument("-o", "--output", type=Path, default=None, help="Write the context to this file.")
    p.add_argument("--clip", action="store_true", help="Copy the context to the clipboard.")
    p.add_argument(
        "-C",
        "--base-dir",
        type=Path,
        default=None,
        help="Directory control files are read from (default: current directory).",
    )
    p.add_argument(
        "--ignore",
        action="append",
        default=[],
        dest="cli_ignores",
        help="Ignore pattern, gitignore syntax (repeatable).",
    )
    p.add_argument(
        "--ignore-file",
        default=DEFAULT_CUSTOM_IGNORE_FILE,
        dest="custom_ignore_file",
        help="Custom ignore file name.",
    )
    p.add_argument("--minify-file", default=DEFAULT_MINIFY_FILE, help="Minify pattern file name.")
    p.add_argument("--priority-file", default=DEFAULT_PRIORITY_FILE, help="Priority pattern file name.")
    p.add_argument("--show-tokens", action="store_true", help="Print per-file token counts instead of the context.")
    p.add_argument("--keep-whitespace", action="store_true", help="Do not normalize whitespace.")
    p.add_argument("--keep-comments", action="store_true", help="Do not strip comments.")
    p.add_argument(
        "--token-budget",
        type=token_budget_arg,
        default=None,
        help="Token ceiling; accepts k/M suffixes (e.g. 100k, 2M).",
    )
    p.add_argument("--no-default-ignores", action="store_true", help="Disable the built-in ignore patterns.")
    p.add_argument("--watch", action="store_true", help="Rebuild whenever a watched file changes.")
    p.add_argument(
        "--max-file-kb",
        type=float,
        default=DEFAULT_MAX_FILE_KB,
        help="Skip files larger than this many KB.",
    )
    p.add_argument(
        "--log-file",
        type=str,
        default=os.environ.get(LOG_FILE_ENV_VAR, ""),
        help=f"Log file path (default: ${LOG_FILE_ENV_VAR}).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    parser = build_parser()
    args = parser.parse_args(argv)
    base_dir = (args.base_dir or Path.cwd()).resolve()
    try:
        return make_settings(args, base_dir)
    except ValidationError as e:
        parser.error(str(e))
        raise  # unreachable: parser.error exits


def make_settings(args: argparse.Namespace, base_dir: Path) -> Settings:
    return Settings(
        base_dir=base_dir,
        input_paths=args.paths,
        cli_ignores=args.cli_ignores,
        custom_ignore_file=args.custom_ignore_file,
        minify_file=args.minify_file,
        priority_file=args.priority_file,
        remove_whitespace=not args.keep_whitespace,
        keep_comments=args.keep_comments,
        token_budget=args.token_budget,
        max_file_kb=args.max_file_kb,
        no_default_ignores=args.no_default_ignores,
        output=args.output,
        clip=args.clip,
        show_tokens=args.show_tokens,
        watch=args.watch,
        log_file=args.log_file,
    )


def emit(settings: Settings, content: str) -> None:
    """Send the build result to the clipboard, a file or stdout."""
    if settings.clip:
        try:
            pyperclip.copy(content)
        except pyperclip.PyperclipException as e:
            logger.warning("Clipboard unavailable, writing to stdout instead: %s", e)
        else:
            logger.info("Context copied to clipboard")
            return
    if settings.output:
        out_path = settings.output if settings.output.is_absolute() else settings.base_dir / settings.output
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(content, encoding="utf-8")
        logger.info("Context written to %s", out_path)
        return
    sys.stdout.write(content if content.endswith("\n") else content + "\n")
    sys.stdout.flush()


def run_build(settings: Settings) -> None:
    """Run one build and emit its result, then print the summary to stderr."""
    if settings.show_tokens:
        result = get_file_stats(settings)
        sys.stdout.write(build_token_table(result.files) + "\n")
        stats = result.stats
    else:
        context = generate_context(settings)
        emit(settings, context.final_content)
        stats = context.stats
    print(build_summary_report(stats), file=sys.stderr)


def rebuild(settings: Settings) -> None:
    logger.info("Change detected, rebuilding context")
    try:
        run_build(settings)
    except Exception:
        logger.exception("Rebuild failed")


def main(argv: Sequence[str] | None = None) -> int:
    if ENV_FILE:
        load_dotenv(ENV_FILE)
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    try:
        run_build(settings)
        if settings.watch:
            watch(settings, lambda: rebuild(settings))
    except KeyboardInterrupt:
        return 130
    except Exception:
        logger.exception("Context build failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
