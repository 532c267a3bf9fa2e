from __future__ import annotations

from enum import StrEnum, auto
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field

DEFAULT_IGNORES: tuple[str, ...] = (
    "node_modules/**",
    ".git/**",
    ".DS_Store",
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    ".env",
    ".env.local",
    ".env.*.local",
    "dist/**",
    "build/**",
    "coverage/**",
    "**/*.log",
    "**/*.tmp",
    "**/*.temp",
    ".cache/**",
    ".vscode/**",
    ".idea/**",
    "**/*.swp",
    "**/*.swo",
    "*~",
    ".DS_Store/**",
    "Thumbs.db",
    "desktop.ini",
)

DEFAULT_CUSTOM_IGNORE_FILE = ".contextignore"
DEFAULT_MINIFY_FILE = ".contextminify"
DEFAULT_PRIORITY_FILE = ".contextpriority"

DEFAULT_MAX_FILE_KB = 1024
LARGE_FILE_THRESHOLD_KB = 100
LARGE_FILE_SAMPLE_BYTES = 50 * 1024
BINARY_SAMPLE_BYTES = 8192
NULL_BYTE_THRESHOLD_RATIO = 0.1
NON_PRINTABLE_THRESHOLD_RATIO = 0.3
TOP_CONSUMERS = 3

# Comment stripping and whitespace normalization both skip these.
WHITESPACE_SENSITIVE_EXTENSIONS = frozenset(
    {
        "yaml",
        "yml",
        "haml",
        "pug",
        "sass",
        "styl",
        "hs",
        "fs",
        "coffee",
        "ws",
    },
)
PYTHON_EXTENSIONS = frozenset({"py"})
HTML_COMMENT_EXEMPT_EXTENSIONS: tuple[str, ...] = ("md", "markdown", "mdx")


def file_extension(path: str) -> str:
    """Return the lowercase extension of `path` without its dot ("" when there is none)."""
    return PurePosixPath(path).suffix.lstrip(".").lower()


def is_python_path(path: str) -> bool:
    return file_extension(path) in PYTHON_EXTENSIONS


def is_whitespace_sensitive(path: str) -> bool:
    """Check if a file type depends on exact whitespace (indentation, tabs, blank lines).

    Python is not listed here: it has its own comment stripper and is exempted from
    whitespace normalization separately.

    Args:
        path (str): the candidate path

    Returns:
        bool: True for whitespace-sensitive extensions, `Makefile` and `*.mk`
    """
    name = PurePosixPath(path).name.lower()
    if name == "makefile" or name.endswith(".mk"):
        return True
    return file_extension(path) in WHITESPACE_SENSITIVE_EXTENSIONS


class FileKind(StrEnum):
    """How a processed file ended up in the output."""

    TEXT = auto()
    SAMPLED = auto()
    BINARY = auto()
    SVG = auto()
    MINIFIED = auto()
    ERROR = auto()


class ProcessedFile(BaseModel):
    """One file as it appears in the final artifact.

    Attributes:
        path: Candidate path, relative to the base directory, forward slashes.
        content: Fully formatted output block (header + fence, or header + placeholder).
        token_count: Tokens charged against the budget for this block.
        kind: Which transformation branch produced the block.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Candidate path relative to the base directory")
    content: str = Field(..., description="Formatted output block")
    token_count: int = Field(..., ge=0, description="Token count of the block")
    kind: FileKind = Field(default=FileKind.TEXT, description="Transformation branch")

    @computed_field
    @property
    def size_kb(self) -> float:
        """Size of the formatted block in KB (characters / 1024)."""
        return len(self.content) / 1024


class TokenConsumer(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    token_count: int


class FileTokenStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    token_count: int


def top_consumers(files: list[ProcessedFile], limit: int = TOP_CONSUMERS) -> list[TokenConsumer]:
    """Return the `limit` largest token consumers, descending, ties kept in input order."""
    ranked = sorted(files, key=lambda f: f.token_count, reverse=True)
    return [TokenConsumer(path=f.path, token_count=f.token_count) for f in ranked[:limit]]


class BuildStats(BaseModel):
    """Counters accumulated over one pipeline run.

    Mutated while files are discovered, classified and processed; the budget
    allocator derives a copy instead of touching the original.
    """

    total_files_found: int = 0
    files_to_include: int = 0
    files_to_minify: int = 0
    files_ignored: int = 0
    files_ignored_by_default: int = 0
    files_ignored_by_custom: int = 0
    files_ignored_by_cli: int = 0
    binary_and_svg_files: int = 0
    skipped_large_files: int = 0
    total_token_count: int = 0
    total_file_size_kb: float = 0.0
    top_token_consumers: list[TokenConsumer] = Field(default_factory=list)

    def record(self, processed: ProcessedFile) -> None:
        """Account for one processed file."""
        self.total_token_count += processed.token_count
        self.total_file_size_kb += processed.size_kb
        if processed.kind in {FileKind.BINARY, FileKind.SVG}:
            self.binary_and_svg_files += 1

    def derive_for(self, files: list[ProcessedFile]) -> BuildStats:
        """Return a copy whose totals describe only `files`."""
        derived = self.model_copy(deep=True)
        derived.files_to_include = len(files)
        derived.total_token_count = sum(f.token_count for f in files)
        derived.total_file_size_kb = sum(f.size_kb for f in files)
        derived.top_token_consumers = top_consumers(files)
        return derived


class BudgetAllocation(BaseModel):
    """Result of fitting processed files into a token budget."""

    files: list[ProcessedFile]
    stats: BuildStats
    skipped_priority: list[str] = Field(default_factory=list, description="Priority files that did not fit")
    budget: int


class ContextResult(BaseModel):
    final_content: str
    stats: BuildStats


class FileStatsResult(BaseModel):
    files: list[FileTokenStat]
    stats: BuildStats
