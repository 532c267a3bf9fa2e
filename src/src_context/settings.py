from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from dotenv import find_dotenv
from pydantic import BaseModel, ConfigDict, Field

from src_context.config import (
    DEFAULT_CUSTOM_IGNORE_FILE,
    DEFAULT_MAX_FILE_KB,
    DEFAULT_MINIFY_FILE,
    DEFAULT_PRIORITY_FILE,
    HTML_COMMENT_EXEMPT_EXTENSIONS,
)

ENV_FILE = find_dotenv(usecwd=True)
LOG_FILE_ENV_VAR = "SRC_CONTEXT_LOG_FILE"

PlaceholderFn = Callable[[str], str]


class Settings(BaseModel):
    """Configuration settings for one context build."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    base_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory control files are read from and input paths are relative to.",
    )
    input_paths: list[str] = Field(default_factory=list, description="Files or directories to scan.")
    cli_ignores: list[str] = Field(default_factory=list, description="Highest-precedence ignore patterns.")
    custom_ignore_file: str = Field(default=DEFAULT_CUSTOM_IGNORE_FILE, description="Custom ignore file name.")
    minify_file: str = Field(default=DEFAULT_MINIFY_FILE, description="Minify pattern file name.")
    priority_file: str = Field(default=DEFAULT_PRIORITY_FILE, description="Priority pattern file name.")

    remove_whitespace: bool = Field(default=True, description="Normalize whitespace of eligible files.")
    keep_comments: bool = Field(default=False, description="Disable comment stripping.")
    token_budget: int | None = Field(default=None, ge=0, description="Token ceiling for the output.")
    max_file_kb: float = Field(default=DEFAULT_MAX_FILE_KB, gt=0, description="Files above are skipped.")
    no_default_ignores: bool = Field(default=False, description="Disable the built-in ignore patterns.")
    html_comment_exempt_extensions: list[str] = Field(
        default_factory=lambda: list(HTML_COMMENT_EXEMPT_EXTENSIONS),
        description="Extensions whose HTML comments survive comment stripping.",
    )

    on_binary_file: PlaceholderFn | None = Field(default=None, description="Binary/SVG placeholder text.")
    on_minify_file: PlaceholderFn | None = Field(default=None, description="Minified file placeholder text.")

    output: Path | None = Field(default=None, description="Write the context to this file.")
    clip: bool = Field(default=False, description="Copy the context to the clipboard.")
    show_tokens: bool = Field(default=False, description="Print per-file token counts instead of the context.")
    watch: bool = Field(default=False, description="Rebuild on file changes.")
    watch_interval: float = Field(default=0.5, gt=0, description="Seconds between filesystem polls.")
    debounce_seconds: float = Field(default=0.3, ge=0, description="Quiet period before a rebuild.")
    log_file: str = Field(default="", description="Log file path.")

    @property
    def effective_input_paths(self) -> list[str]:
        """Input paths with the `["."]` default applied."""
        return list(self.input_paths) or ["."]
