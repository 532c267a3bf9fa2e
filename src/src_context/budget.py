from __future__ import annotations

import re
from typing import TYPE_CHECKING

from src_context.config import BudgetAllocation, BuildStats
from src_context.exceptions import InvalidTokenBudgetError
from src_context.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src_context.config import ProcessedFile
    from src_context.patterns import PatternSet

_BUDGET_RE = re.compile(r"^(\d+)([kKmM]?)$")
_MULTIPLIERS = {"": 1, "k": 1_000, "m": 1_000_000}


def parse_token_budget(value: str) -> int:
    """Parse a token budget with an optional `k`/`M` suffix.

    Args:
        value (str): e.g. "8000", "100k", "2M"

    Raises:
        InvalidTokenBudgetError: if the value is not a non-negative integer with an optional suffix

    Returns:
        int: the budget in tokens
    """
    match = _BUDGET_RE.match(value.strip())
    if not match:
        raise InvalidTokenBudgetError(value=value)
    return int(match.group(1)) * _MULTIPLIERS[match.group(2).lower()]


def apply_token_budget(
    files: Sequence[ProcessedFile],
    budget: int,
    priority: PatternSet,
    stats: BuildStats | None = None,
) -> BudgetAllocation:
    """Select the processed files that fit into a token budget.

    Priority files go first, smallest first, and a priority file that does not fit is
    skipped with a warning while smaller ones may still get in. The remaining files
    follow, smallest first, until the first one that does not fit; nothing after it is
    considered. Sorting is stable, so equal counts keep discovery order.

    Args:
        files (Sequence[ProcessedFile]): every processed file, in discovery order
        budget (int): the token ceiling
        priority (PatternSet): patterns matched against each file's path
        stats (BuildStats | None): full-run statistics to derive the budgeted ones from

    Returns:
        BudgetAllocation: the selected files and statistics recomputed for them alone
    """
    prioritized = sorted((f for f in files if priority.matches(f.path)), key=lambda f: f.token_count)
    remaining = sorted((f for f in files if not priority.matches(f.path)), key=lambda f: f.token_count)

    selected: list[ProcessedFile] = []
    skipped: list[str] = []
    total = 0
    for f in prioritized:
        if total + f.token_count <= budget:
            selected.append(f)
            total += f.token_count
        else:
            logger.warning(
                "Priority file %s (%d tokens) does not fit in the token budget (%d)",
                f.path,
                f.token_count,
                budget,
            )
            skipped.append(f.path)

    for f in remaining:
        if total + f.token_count > budget:
            break
        selected.append(f)
        total += f.token_count

    # Back to discovery order so ties among top consumers stay stable.
    position = {f.path: i for i, f in enumerate(files)}
    selected.sort(key=lambda f: position[f.path])
    base = stats if stats is not None else BuildStats()
    return BudgetAllocation(files=selected, stats=base.derive_for(selected), skipped_priority=skipped, budget=budget)
