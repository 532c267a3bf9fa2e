from __future__ import annotations

import os
import posixpath
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from src_context.config import (
    BINARY_SAMPLE_BYTES,
    LARGE_FILE_SAMPLE_BYTES,
    LARGE_FILE_THRESHOLD_KB,
    NON_PRINTABLE_THRESHOLD_RATIO,
    NULL_BYTE_THRESHOLD_RATIO,
    BuildStats,
    FileKind,
    ProcessedFile,
    file_extension,
    is_python_path,
    is_whitespace_sensitive,
)
from src_context.exceptions import CommentStripError
from src_context.logging import logger
from src_context.output_construction import format_file_content
from src_context.tokens import count_tokens

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src_context.comments import CommentStripper
    from src_context.settings import PlaceholderFn

_PRINTABLE_CONTROLS = frozenset({9, 10, 13})


class CandidatePath(BaseModel):
    """A discovered file.

    Attributes:
        path: Path relative to the base directory, forward slashes.
        match_path: The same file relative to the input path that produced it; the
            path ignore/minify patterns are matched against.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Path relative to the base directory")
    match_path: str = Field(..., description="Path relative to the producing input path")


def normalize_path(path: str) -> str:
    """Normalize separators to `/` and collapse `.`/`..` segments."""
    norm = posixpath.normpath(path.replace("\\", "/"))
    return "." if norm in {"", "."} else norm


def relpath(path: Path, root: Path) -> str:
    """POSIX form of `path` relative to `root`, or of `path` itself when it lies outside `root`."""
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def is_git_path(path: str) -> bool:
    """True for anything inside (or named) a `.git` directory."""
    norm = path.replace("\\", "/")
    return ".git" in PurePosixPath(norm).parts or norm.endswith(".git")


def input_relative(input_path: str, base_dir: Path) -> str:
    """Express an input path relative to `base_dir` when it is absolute and under it."""
    p = Path(input_path)
    if p.is_absolute():
        try:
            return normalize_path(p.relative_to(base_dir).as_posix())
        except ValueError:
            return p.as_posix()
    return normalize_path(input_path)


def walk_files(root: Path) -> list[str]:
    """Walk `root` and return every file below it, relative to it.

    Dotfiles are included; `.git` directories are pruned.

    Args:
        root (Path): the directory to walk

    Returns:
        list[str]: POSIX paths relative to `root`
    """
    results: list[str] = []
    for cur, dirs, files in os.walk(root):
        dirs[:] = [d for d in dirs if d != ".git"]
        cur_path = Path(cur)
        results.extend(relpath(cur_path / f, root) for f in files)
    return results


def discover_files(input_paths: Sequence[str], base_dir: Path, stats: BuildStats | None = None) -> list[CandidatePath]:
    """Expand input paths into deduplicated candidate files.

    Directories are walked recursively and their files joined back onto the input
    path as given, so candidates stay relative to `base_dir`. Unreadable input paths
    are logged and skipped. `.git` content never becomes a candidate.

    Args:
        input_paths (Sequence[str]): files or directories; `["."]` when empty
        base_dir (Path): directory relative inputs are resolved against
        stats (BuildStats | None): `total_files_found` is set on it when given

    Returns:
        list[CandidatePath]: candidates sorted by path (the run's discovery order)
    """
    found: dict[str, CandidatePath] = {}
    for raw in input_paths or ["."]:
        input_path = input_relative(raw, base_dir)
        absolute = base_dir / input_path
        try:
            is_dir = absolute.is_dir()
            if not is_dir:
                absolute.stat()
        except OSError as e:
            logger.warning("Could not process path %s: %s", raw, e)
            continue

        if is_dir:
            for rel in walk_files(absolute):
                path = normalize_path(posixpath.join(input_path, rel))
                found.setdefault(path, CandidatePath(path=path, match_path=rel))
        elif absolute.exists():
            found.setdefault(input_path, CandidatePath(path=input_path, match_path=input_path))
        else:
            logger.warning("Could not process path %s: not a file or directory", raw)

    candidates = [c for p, c in sorted(found.items()) if not is_git_path(p)]
    if stats is not None:
        stats.total_files_found = len(candidates)
    return candidates


def looks_binary(sample: bytes) -> bool:
    """Heuristic on a byte sample: >10% NUL bytes or >30% control characters."""
    if not sample:
        return False
    null_bytes = 0
    non_printable = 0
    for byte in sample:
        if byte == 0:
            null_bytes += 1
        elif byte < 32 and byte not in _PRINTABLE_CONTROLS:  # noqa: PLR2004
            non_printable += 1
    return (
        null_bytes > len(sample) * NULL_BYTE_THRESHOLD_RATIO
        or non_printable > len(sample) * NON_PRINTABLE_THRESHOLD_RATIO
    )


def is_binary_content(data: bytes) -> bool:
    """Full-content check used for small files.

    Any NUL byte marks the file binary. Otherwise valid UTF-8 is text, and content
    that is not UTF-8 falls back to the sampling heuristic.

    Args:
        data (bytes): the whole file

    Returns:
        bool: True if the content is binary
    """
    if not data:
        return False
    if b"\x00" in data:
        return True
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return looks_binary(data)
    return False


def read_head(path: Path, nbytes: int) -> bytes:
    with path.open("rb") as f:
        return f.read(nbytes)


def is_binary_file(path: Path, size_kb: float) -> bool:
    """Sample the first 8 KiB of large files, sniff small ones in full."""
    if size_kb > LARGE_FILE_THRESHOLD_KB:
        return looks_binary(read_head(path, BINARY_SAMPLE_BYTES))
    return is_binary_content(path.read_bytes())


def remove_extra_whitespace(content: str) -> str:
    """Collapse 3+ newlines to 2, right-trim every line, trim the whole text."""
    lines = content.split("\n")
    out: list[str] = []
    blank_run = 0
    for ln in lines:
        ln = ln.rstrip()  # noqa: PLW2901
        blank_run = blank_run + 1 if not ln else 0
        if blank_run > 1:
            continue
        out.append(ln)
    return "\n".join(out).strip()


def read_text(path: Path) -> str:
    """Read a text file as UTF-8 without newline translation."""
    with path.open(encoding="utf-8", errors="replace", newline="") as f:
        return f.read()


def binary_placeholder(path: str, *, is_svg: bool) -> str:
    kind = "SVG" if is_svg else "binary"
    return f"[Content of {kind} file: {path}]"


def minify_placeholder(path: str) -> str:
    return f"[Content for {path} has been minified and excluded]"


def error_placeholder(path: str, error: BaseException) -> str:
    return f"[Error: Could not read file {path}. {error}]"


class ContentTransformer:
    """Turns candidate paths into `ProcessedFile` blocks.

    One instance serves a whole run; `stats` is updated as files are processed.
    """

    def __init__(
        self,
        base_dir: Path,
        stats: BuildStats,
        *,
        comment_stripper: CommentStripper | None,
        remove_whitespace: bool,
        max_file_kb: float,
        on_binary_file: PlaceholderFn | None = None,
        on_minify_file: PlaceholderFn | None = None,
    ) -> None:
        self.base_dir = base_dir
        self.stats = stats
        self.comment_stripper = comment_stripper
        self.remove_whitespace = remove_whitespace
        self.max_file_kb = max_file_kb
        self.on_binary_file = on_binary_file
        self.on_minify_file = on_minify_file

    def resolve(self, path: str) -> Path:
        return self.base_dir / path

    def process(self, path: str) -> ProcessedFile | None:
        """Process one include-fully file; None when it is skipped for size."""
        try:
            size_kb = self.resolve(path).stat().st_size / 1024
            if size_kb > self.max_file_kb:
                logger.warning(
                    "Skipping large file %s (%.2fKB > %sKB)",
                    path,
                    size_kb,
                    self.max_file_kb,
                )
                self.stats.skipped_large_files += 1
                return None
            is_svg = file_extension(path) == "svg"
            if is_svg or is_binary_file(self.resolve(path), size_kb):
                result = self.binary_file(path, is_svg=is_svg)
            elif size_kb > LARGE_FILE_THRESHOLD_KB:
                result = self.sampled_text_file(path, size_kb)
            else:
                result = self.text_file(path)
        except Exception as e:  # noqa: BLE001
            result = self.failed_file(path, e)
        self.stats.record(result)
        return result

    def process_minified(self, path: str) -> ProcessedFile:
        placeholder = self.on_minify_file(path) if self.on_minify_file else minify_placeholder(path)
        block = format_file_content(path, placeholder, placeholder=True)
        result = ProcessedFile(path=path, content=block, token_count=count_tokens(block), kind=FileKind.MINIFIED)
        self.stats.record(result)
        return result

    def binary_file(self, path: str, *, is_svg: bool) -> ProcessedFile:
        if self.on_binary_file:
            placeholder = self.on_binary_file(path)
        else:
            placeholder = binary_placeholder(path, is_svg=is_svg)
        return ProcessedFile(
            path=path,
            content=format_file_content(path, placeholder, placeholder=True),
            token_count=count_tokens(placeholder),
            kind=FileKind.SVG if is_svg else FileKind.BINARY,
        )

    def sampled_text_file(self, path: str, size_kb: float) -> ProcessedFile:
        """Show the first 50 KB of a large text file and extrapolate its token count."""
        raw = read_head(self.resolve(path), LARGE_FILE_SAMPLE_BYTES)
        sample = raw.decode("utf-8", errors="ignore")
        sample_kb = len(raw) / 1024
        content = f"{sample}\n\n[Note: Large file ({size_kb:.1f}KB) - showing first {sample_kb:.1f}KB]"
        token_count = round(count_tokens(sample) * (size_kb / sample_kb)) if sample_kb else 0
        return ProcessedFile(
            path=path,
            content=format_file_content(path, content),
            token_count=token_count,
            kind=FileKind.SAMPLED,
        )

    def strip(self, path: str, text: str) -> str:
        if self.comment_stripper is None or is_whitespace_sensitive(path):
            return text
        try:
            return self.comment_stripper.strip(path, text)
        except CommentStripError as e:
            logger.warning("Could not strip comments from %s, keeping them: %s", path, e)
            return text

    def text_file(self, path: str) -> ProcessedFile:
        text = self.strip(path, read_text(self.resolve(path)))
        if self.remove_whitespace and not is_whitespace_sensitive(path) and not is_python_path(path):
            text = remove_extra_whitespace(text)
        block = format_file_content(path, text)
        return ProcessedFile(path=path, content=block, token_count=count_tokens(block), kind=FileKind.TEXT)

    def failed_file(self, path: str, error: BaseException) -> ProcessedFile:
        logger.warning("Could not process file %s: %s", path, error)
        placeholder = error_placeholder(path, error)
        return ProcessedFile(
            path=path,
            content=format_file_content(path, placeholder, placeholder=True),
            token_count=count_tokens(placeholder),
            kind=FileKind.ERROR,
        )
