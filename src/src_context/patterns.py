from __future__ import annotations

from enum import StrEnum, auto
from functools import lru_cache
from typing import TYPE_CHECKING

import pathspec
from pydantic import BaseModel, ConfigDict, Field

from src_context.config import DEFAULT_IGNORES, BuildStats
from src_context.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from pathlib import Path

    from src_context.file_manipulation import CandidatePath


class IgnoreTier(StrEnum):
    """Ignore pattern sources, in increasing order of precedence."""

    DEFAULT = auto()
    CUSTOM = auto()
    CLI = auto()


class PatternSet(BaseModel):
    """An ordered, immutable list of gitignore-style patterns (`!` negates)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Where the patterns come from")
    patterns: tuple[str, ...] = Field(default=(), description="Patterns in file order")

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def matches(self, path: str) -> bool:
        return matches(self.patterns, path)


@lru_cache(maxsize=64)
def _compile(patterns: tuple[str, ...]) -> pathspec.GitIgnoreSpec:
    return pathspec.GitIgnoreSpec.from_lines(patterns)


def matches(patterns: Sequence[str], path: str) -> bool:
    """Check whether an ordered pattern list excludes `path`.

    Later patterns override earlier ones, so a trailing `!pattern` re-includes a path
    an earlier pattern excluded.

    Args:
        patterns (Sequence[str]): gitignore-style patterns
        path (str): a forward-slash path relative to the scanned root

    Returns:
        bool: True if the last matching pattern excludes the path
    """
    if not patterns:
        return False
    return _compile(tuple(patterns)).match_file(path)


def parse_pattern_lines(lines: Iterable[str]) -> list[str]:
    """Strip lines and drop blanks and `#` comments."""
    out: list[str] = []
    for ln in lines:
        s = ln.strip()
        if not s or s.startswith("#"):
            continue
        out.append(s)
    return out


def load_patterns_from_file(path: Path) -> list[str]:
    """Read a control file (`.contextignore`, `.contextminify`, `.contextpriority`).

    A missing file is not an error and yields no patterns. Other read failures are
    logged and also yield no patterns.

    Args:
        path (Path): the control file

    Returns:
        list[str]: patterns in file order
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read patterns file %s: %s", path, e)
        return []
    return parse_pattern_lines(text.splitlines())


def load_pattern_set(base_dir: Path, file_name: str, name: str | None = None) -> PatternSet:
    return PatternSet(name=name or file_name, patterns=tuple(load_patterns_from_file(base_dir / file_name)))


class IgnoreRules(BaseModel):
    """The pattern sets one run classifies candidates with."""

    model_config = ConfigDict(frozen=True)

    default: PatternSet = Field(default_factory=lambda: PatternSet(name=IgnoreTier.DEFAULT))
    custom: PatternSet = Field(default_factory=lambda: PatternSet(name=IgnoreTier.CUSTOM))
    cli: PatternSet = Field(default_factory=lambda: PatternSet(name=IgnoreTier.CLI))
    minify: PatternSet = Field(default_factory=lambda: PatternSet(name="minify"))

    @property
    def combined(self) -> tuple[str, ...]:
        """Default, then custom, then CLI patterns, so later tiers can negate earlier ones."""
        return (*self.default.patterns, *self.custom.patterns, *self.cli.patterns)

    def tiers(self) -> list[tuple[IgnoreTier, PatternSet]]:
        """Tiers from highest to lowest precedence."""
        return [(IgnoreTier.CLI, self.cli), (IgnoreTier.CUSTOM, self.custom), (IgnoreTier.DEFAULT, self.default)]

    def is_ignored(self, path: str) -> bool:
        return matches(self.combined, path)

    def attribute(self, path: str) -> IgnoreTier:
        """Name the single tier responsible for excluding `path`.

        Tiers are asked independently, highest precedence first. When no tier flags
        the path on its own (only the combination does), the highest-precedence
        non-empty tier takes the blame.

        Args:
            path (str): a path the combined patterns exclude

        Returns:
            IgnoreTier: the tier to count the exclusion against
        """
        for tier, pattern_set in self.tiers():
            if pattern_set and pattern_set.matches(path):
                return tier
        for tier, pattern_set in self.tiers():
            if pattern_set:
                return tier
        return IgnoreTier.DEFAULT


def build_ignore_rules(
    base_dir: Path,
    *,
    cli_ignores: Sequence[str],
    custom_ignore_file: str,
    minify_file: str,
    no_default_ignores: bool,
) -> IgnoreRules:
    """Load every ignore/minify pattern source for a run (control files are read fresh each time)."""
    return IgnoreRules(
        default=PatternSet(name=IgnoreTier.DEFAULT, patterns=() if no_default_ignores else DEFAULT_IGNORES),
        custom=load_pattern_set(base_dir, custom_ignore_file, name=IgnoreTier.CUSTOM),
        cli=PatternSet(name=IgnoreTier.CLI, patterns=tuple(parse_pattern_lines(cli_ignores))),
        minify=load_pattern_set(base_dir, minify_file, name="minify"),
    )


class Classification(BaseModel):
    """Candidates split by the ignore resolver."""

    include: list[str] = Field(default_factory=list)
    minify: list[str] = Field(default_factory=list)
    ignored: list[str] = Field(default_factory=list)


def classify_candidates(
    candidates: Sequence[CandidatePath],
    rules: IgnoreRules,
    stats: BuildStats,
) -> Classification:
    """Classify candidates as include-fully, minify-only or excluded.

    Minify patterns are checked first, so a path matched by both the minify set and
    an ignore set is minified. Exclusions are attributed to one tier each and
    counted on `stats`.

    Args:
        candidates (Sequence[CandidatePath]): discovered candidates, in discovery order
        rules (IgnoreRules): the pattern sets of this run
        stats (BuildStats): counters updated in place

    Returns:
        Classification: include, minify and ignored path lists
    """
    result = Classification()
    counts = dict.fromkeys(IgnoreTier, 0)
    for cand in candidates:
        if rules.minify.matches(cand.match_path):
            result.minify.append(cand.path)
            continue
        if rules.is_ignored(cand.match_path):
            counts[rules.attribute(cand.match_path)] += 1
            result.ignored.append(cand.path)
            continue
        result.include.append(cand.path)

    stats.files_ignored_by_default = counts[IgnoreTier.DEFAULT]
    stats.files_ignored_by_custom = counts[IgnoreTier.CUSTOM]
    stats.files_ignored_by_cli = counts[IgnoreTier.CLI]
    stats.files_ignored = sum(counts.values())
    stats.files_to_include = len(result.include)
    stats.files_to_minify = len(result.minify)
    return result
