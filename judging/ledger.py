"""Score ledger: one cell per (student, judge, criterion)."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from . import rubric
from .errors import LockedError, NotFoundError, ScoreRangeError
from .models import Criterion
from .store import JudgingStore
from .submissions import PairLocks

logger = logging.getLogger(__name__)


class ScoreLedger:
    def __init__(self, store: JudgingStore, locks: PairLocks):
        self.store = store
        self.locks = locks

    def _criterion(self, criterion_id: str) -> Criterion:
        criterion = self.store.get_criterion(criterion_id)
        if criterion is None:
            raise NotFoundError("criterion", criterion_id)
        return criterion

    def get_score(self, student_id: str, judge_id: str, criterion_id: str) -> Optional[int]:
        return self.store.get_score(student_id, judge_id, criterion_id)

    def set_score(self, student_id: str, judge_id: str, criterion_id: str, value: int) -> int:
        """Upsert one cell. Locked pairs are refused before the range check."""
        criterion = self._criterion(criterion_id)
        with self.locks.hold(student_id, judge_id):
            if self.store.is_submitted(student_id, judge_id):
                logger.warning("Rejected write to locked pair student=%s judge=%s", student_id, judge_id)
                raise LockedError(student_id, judge_id)
            try:
                rubric.validate_score(criterion, value)
            except ScoreRangeError:
                logger.warning(
                    "Rejected out of range score %r for criterion '%s'", value, criterion.name
                )
                raise
            if not self.store.set_score(student_id, judge_id, criterion_id, value):
                raise LockedError(student_id, judge_id)
        return value

    def clear_score(self, student_id: str, judge_id: str, criterion_id: str) -> None:
        self._criterion(criterion_id)
        with self.locks.hold(student_id, judge_id):
            if not self.store.delete_score(student_id, judge_id, criterion_id):
                raise LockedError(student_id, judge_id)

    def all_scores_for(self, student_id: str, judge_id: str) -> Dict[str, int]:
        return self.store.scores_for_pair(student_id, judge_id)

    def judge_total(self, student_id: str, judge_id: str) -> int:
        return rubric.weighted_total(self.store.get_criteria(), self.all_scores_for(student_id, judge_id))
