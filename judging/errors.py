"""Typed failures raised by the scoring core and its collaborators."""

from __future__ import annotations

from typing import Dict, List


class JudgingError(Exception):
    """Base class for every error the judging core raises on purpose."""


class ScoreRangeError(JudgingError):
    def __init__(self, criterion_name: str, value, min_score: int, max_score: int):
        self.criterion_name = criterion_name
        self.value = value
        self.min_score = min_score
        self.max_score = max_score
        super().__init__(
            f"Score {value!r} for '{criterion_name}' is invalid: "
            f"must be a whole number between {min_score} and {max_score}."
        )


class LockedError(JudgingError):
    def __init__(self, student_id: str, judge_id: str):
        self.student_id = student_id
        self.judge_id = judge_id
        super().__init__(
            f"Scores for student {student_id} by judge {judge_id} are submitted "
            "and locked. A super judge must unlock them before they can change."
        )


class NotFoundError(JudgingError):
    def __init__(self, kind: str, ident, detail: str = ""):
        self.kind = kind
        self.ident = ident
        msg = f"{kind.capitalize()} not found: {ident}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class IncompleteSubmissionError(JudgingError):
    """Bulk submission blocked; ``blocking`` lists every offending student."""

    def __init__(self, blocking: List[Dict]):
        self.blocking = blocking
        parts = []
        for item in blocking:
            missing = ", ".join(item["missing"]) or "no scores entered"
            parts.append(f"{item['student_name']}: {missing}")
        super().__init__("Cannot submit group, incomplete scores. " + "; ".join(parts))


class StoreError(JudgingError):
    """Wraps an underlying persistence failure."""


class AuthenticationError(JudgingError):
    pass


class PermissionDeniedError(JudgingError):
    pass


class ImportFormatError(JudgingError):
    pass


class ConflictError(JudgingError):
    pass


class RubricError(JudgingError, ValueError):
    """A criterion definition whose resolved range is empty."""
