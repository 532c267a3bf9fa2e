from __future__ import annotations

from typing import TYPE_CHECKING

from src_context.budget import apply_token_budget
from src_context.comments import CommentStripper
from src_context.config import BuildStats, ContextResult, FileStatsResult, FileTokenStat, top_consumers
from src_context.file_manipulation import ContentTransformer, discover_files
from src_context.output_construction import build_context
from src_context.patterns import Classification, build_ignore_rules, classify_candidates, load_pattern_set

if TYPE_CHECKING:
    from src_context.config import ProcessedFile
    from src_context.settings import Settings


def gather_files(settings: Settings, stats: BuildStats) -> Classification:
    """Discover candidates under the input paths and classify them.

    Control files are read from `settings.base_dir` on every call.

    Args:
        settings (Settings): the run configuration
        stats (BuildStats): fresh statistics, filled with discovery and ignore counts

    Returns:
        Classification: include, minify and ignored path lists
    """
    candidates = discover_files(settings.effective_input_paths, settings.base_dir, stats)
    rules = build_ignore_rules(
        settings.base_dir,
        cli_ignores=settings.cli_ignores,
        custom_ignore_file=settings.custom_ignore_file,
        minify_file=settings.minify_file,
        no_default_ignores=settings.no_default_ignores,
    )
    return classify_candidates(candidates, rules, stats)


def process_files(settings: Settings, classification: Classification, stats: BuildStats) -> list[ProcessedFile]:
    """Transform classified files into output blocks, in discovery order.

    Args:
        settings (Settings): the run configuration
        classification (Classification): output of `gather_files`
        stats (BuildStats): updated with tokens, sizes and binary/skip counts

    Returns:
        list[ProcessedFile]: one entry per included or minified file, size-skipped files left out
    """
    transformer = ContentTransformer(
        settings.base_dir,
        stats,
        comment_stripper=None if settings.keep_comments else CommentStripper(settings.html_comment_exempt_extensions),
        remove_whitespace=settings.remove_whitespace,
        max_file_kb=settings.max_file_kb,
        on_binary_file=settings.on_binary_file,
        on_minify_file=settings.on_minify_file,
    )
    results: list[ProcessedFile] = []
    for path in classification.include:
        processed = transformer.process(path)
        if processed is not None:
            results.append(processed)
    results.extend(transformer.process_minified(path) for path in classification.minify)
    results.sort(key=lambda f: f.path)
    stats.top_token_consumers = top_consumers(results)
    return results


def _run(settings: Settings) -> tuple[list[ProcessedFile], BuildStats]:
    stats = BuildStats()
    classification = gather_files(settings, stats)
    files = process_files(settings, classification, stats)
    if settings.token_budget is not None:
        priority = load_pattern_set(settings.base_dir, settings.priority_file, name="priority")
        allocation = apply_token_budget(files, settings.token_budget, priority, stats)
        return allocation.files, allocation.stats
    return files, stats


def generate_context(settings: Settings) -> ContextResult:
    """Build the full context artifact: structure tree followed by file blocks.

    Args:
        settings (Settings): the run configuration

    Returns:
        ContextResult: the rendered content and the statistics of what it contains
    """
    files, stats = _run(settings)
    return ContextResult(final_content=build_context(files), stats=stats)


def get_file_stats(settings: Settings) -> FileStatsResult:
    """Run the same pipeline but report per-file token counts, largest first."""
    files, stats = _run(settings)
    ranked = sorted(files, key=lambda f: f.token_count, reverse=True)
    return FileStatsResult(files=[FileTokenStat(path=f.path, token_count=f.token_count) for f in ranked], stats=stats)
