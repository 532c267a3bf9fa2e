from __future__ import annotations

import pytest

from src_context.budget import apply_token_budget, parse_token_budget
from src_context.config import BuildStats, ProcessedFile
from src_context.exceptions import InvalidTokenBudgetError
from src_context.patterns import PatternSet


def _file(path: str, tokens: int) -> ProcessedFile:
    return ProcessedFile(path=path, content=f"# {path}\n\n```\n{'x' * tokens}\n```", token_count=tokens)


NO_PRIORITY = PatternSet(name="priority")


@pytest.mark.unit
@pytest.mark.parametrize(
    ("value", "expected"),
    [("8000", 8000), ("100k", 100_000), ("100K", 100_000), ("2M", 2_000_000), ("2m", 2_000_000), (" 0 ", 0)],
)
def test_parse_token_budget(value: str, expected: int) -> None:
    assert parse_token_budget(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", ["", "abc", "-5", "1.5k", "10G", "k"])
def test_parse_token_budget_rejects_garbage(value: str) -> None:
    with pytest.raises(InvalidTokenBudgetError):
        parse_token_budget(value)


@pytest.mark.unit
def test_priority_files_first_then_smallest_remaining() -> None:
    files = [_file("a", 500), _file("b", 300), _file("c", 200), _file("d", 100)]
    priority = PatternSet(name="priority", patterns=("a", "c"))

    allocation = apply_token_budget(files, 800, priority)

    assert {f.path for f in allocation.files} == {"a", "c", "d"}
    assert allocation.stats.total_token_count == 800
    assert allocation.stats.files_to_include == 3
    assert [c.path for c in allocation.stats.top_token_consumers] == ["a", "c", "d"]


@pytest.mark.unit
def test_oversized_priority_file_is_skipped_and_smaller_ones_still_fit() -> None:
    files = [_file("big", 900), _file("small", 100), _file("mid", 400)]
    priority = PatternSet(name="priority", patterns=("big", "small", "mid"))

    allocation = apply_token_budget(files, 600, priority)

    assert {f.path for f in allocation.files} == {"small", "mid"}
    assert allocation.skipped_priority == ["big"]


@pytest.mark.unit
def test_remaining_files_stop_at_first_miss() -> None:
    files = [_file("p", 50), _file("r1", 30), _file("r2", 40), _file("r3", 45)]
    priority = PatternSet(name="priority", patterns=("p",))

    allocation = apply_token_budget(files, 125, priority)

    # r3 (45) does not fit after p + r1 + r2 (120); nothing after it is tried.
    assert {f.path for f in allocation.files} == {"p", "r1", "r2"}


@pytest.mark.unit
def test_remaining_files_never_resume_after_a_miss() -> None:
    files = [_file("a", 10), _file("b", 10), _file("c", 100)]

    allocation = apply_token_budget(files, 25, NO_PRIORITY)

    assert {f.path for f in allocation.files} == {"a", "b"}
    assert allocation.stats.total_token_count == 20


@pytest.mark.unit
def test_budget_stats_are_derived_not_mutated() -> None:
    files = [_file("a", 10), _file("b", 20), _file("c", 30)]
    stats = BuildStats(total_files_found=3, files_to_include=3, total_token_count=60)

    allocation = apply_token_budget(files, 35, NO_PRIORITY, stats)

    assert stats.total_token_count == 60
    assert stats.files_to_include == 3
    assert allocation.stats.total_token_count == 30
    assert allocation.stats.files_to_include == 2
    assert allocation.stats.total_files_found == 3
    assert allocation.stats.total_file_size_kb == pytest.approx(sum(f.size_kb for f in allocation.files))


@pytest.mark.unit
def test_zero_budget_selects_nothing() -> None:
    allocation = apply_token_budget([_file("a", 1)], 0, NO_PRIORITY)

    assert allocation.files == []
    assert allocation.stats.total_token_count == 0
    assert allocation.stats.top_token_consumers == []


@pytest.mark.unit
def test_top_consumer_ties_keep_discovery_order() -> None:
    files = [_file("a", 5), _file("b", 5), _file("c", 5), _file("d", 5)]

    allocation = apply_token_budget(files, 100, NO_PRIORITY)

    assert [c.path for c in allocation.stats.top_token_consumers] == ["a", "b", "c"]
