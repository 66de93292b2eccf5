"""
Rubric rules: score ranges, penalty polarity and completeness.

Legacy criteria were stored without a range. For those, ``resolve_range``
falls back to a name lookup table; nothing else in the package reads the
table. ``JudgingService.migrate_criterion_ranges`` writes the resolved range
back so the fallback can eventually go away.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Tuple

from .errors import ScoreRangeError
from .models import Criterion

DEFAULT_RANGE: Tuple[int, int] = (1, 10)

PENALTY_KEYWORDS: Tuple[str, ...] = ("reading sentences", "overtime", "preparation")

# Checked in order, first substring hit wins.
_LEGACY_RANGES: Tuple[Tuple[str, Tuple[int, int]], ...] = (
    ("ideas example", (1, 5)),
    ("reading sentences", (0, 5)),
    ("overtime", (0, 5)),
    ("preparation", (0, 5)),
)


def _normalize(name: str) -> str:
    return " ".join((name or "").lower().split())


def legacy_range(name: str) -> Tuple[int, int]:
    key = _normalize(name)
    for needle, bounds in _LEGACY_RANGES:
        if needle in key:
            return bounds
    return DEFAULT_RANGE


def resolve_range(criterion: Criterion) -> Tuple[int, int]:
    """Explicit bounds win; a missing bound comes from the legacy table."""
    lo, hi = criterion.min_score, criterion.max_score
    if lo is not None and hi is not None:
        return int(lo), int(hi)
    fallback_lo, fallback_hi = legacy_range(criterion.name)
    return (
        int(lo) if lo is not None else fallback_lo,
        int(hi) if hi is not None else fallback_hi,
    )


def validate_score(criterion: Criterion, value) -> int:
    lo, hi = resolve_range(criterion)
    # bool is an int subclass, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ScoreRangeError(criterion.name, value, lo, hi)
    if value < lo or value > hi:
        raise ScoreRangeError(criterion.name, value, lo, hi)
    return value


def is_penalty(criterion: Criterion) -> bool:
    if criterion.is_penalty:
        return True
    key = _normalize(criterion.name)
    return any(word in key for word in PENALTY_KEYWORDS)


def polarity(criterion: Criterion) -> int:
    return -1 if is_penalty(criterion) else 1


def required_criteria(criteria: Iterable[Criterion]) -> List[Criterion]:
    return [c for c in criteria if not is_penalty(c)]


def missing_required(criteria: Iterable[Criterion], scores: Mapping[str, Optional[int]]) -> List[str]:
    """Names of non-penalty criteria that have no score yet."""
    return [c.name for c in required_criteria(criteria) if scores.get(c.id) is None]


def weighted_total(criteria: Iterable[Criterion], scores: Mapping[str, Optional[int]]) -> int:
    total = 0
    for c in criteria:
        value = scores.get(c.id)
        if value is not None:
            total += polarity(c) * int(value)
    return total
