"""
Submission lock per (student, judge) pair.

Draft -> Submitted on ``submit`` (judge), Submitted -> Draft on ``unlock``
(super judge). ``PairLocks`` gives each pair a re-entrant critical section so
"check lock, then write" cannot interleave with a concurrent transition when
FastAPI runs sync handlers on its thread pool.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Tuple

from . import rubric
from .errors import IncompleteSubmissionError, NotFoundError
from .store import JudgingStore

logger = logging.getLogger(__name__)


class PairLocks:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], threading.RLock] = {}

    def _lock_for(self, student_id: str, judge_id: str) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault((student_id, judge_id), threading.RLock())

    @contextmanager
    def hold(self, student_id: str, judge_id: str) -> Iterator[None]:
        lock = self._lock_for(student_id, judge_id)
        with lock:
            yield


class SubmissionLock:
    def __init__(self, store: JudgingStore, locks: PairLocks):
        self.store = store
        self.locks = locks

    def is_submitted(self, student_id: str, judge_id: str) -> bool:
        return self.store.is_submitted(student_id, judge_id)

    def submit(self, student_id: str, judge_id: str) -> bool:
        """Lock the pair with whatever scores exist. Re-submitting is a no-op."""
        with self.locks.hold(student_id, judge_id):
            created = self.store.submit(student_id, judge_id)
        if created:
            logger.info("Submitted scores student=%s judge=%s", student_id, judge_id)
        return created

    def unlock(self, student_id: str, judge_id: str) -> bool:
        with self.locks.hold(student_id, judge_id):
            removed = self.store.unlock(student_id, judge_id)
        if removed:
            logger.info("Unlocked scores student=%s judge=%s", student_id, judge_id)
        return removed

    def submission_status(self, student_id: str, judge_id: str) -> Dict:
        criteria = self.store.get_criteria()
        scores = self.store.scores_for_pair(student_id, judge_id)
        return {
            "student_id": student_id,
            "judge_id": judge_id,
            "submitted": self.store.is_submitted(student_id, judge_id),
            "scored": sorted(c.name for c in criteria if c.id in scores),
            "missing_required": rubric.missing_required(criteria, scores),
            "total": rubric.weighted_total(criteria, scores),
        }

    def submit_all_for_group(self, group_id: str, judge_id: str) -> List[str]:
        """Submit every draft student of ``group_id`` for one judge, or none.

        Students already submitted are skipped. Any other student without a
        score, or with a required criterion unscored, blocks the whole batch;
        the raised error lists every blocking student.
        Returns the ids of newly submitted students.
        """
        if self.store.get_group(group_id) is None:
            raise NotFoundError("group", group_id)
        if group_id not in self.store.get_judge_groups(judge_id):
            raise NotFoundError("group", group_id, f"judge {judge_id} is not assigned to it")

        criteria = self.store.get_criteria()
        pending: List[str] = []
        blocking: List[Dict] = []
        for student in self.store.get_students_in_group(group_id):
            if self.store.is_submitted(student.id, judge_id):
                continue
            scores = self.store.scores_for_pair(student.id, judge_id)
            missing = rubric.missing_required(criteria, scores)
            if not scores or missing:
                blocking.append(
                    {
                        "student_id": student.id,
                        "student_name": student.name,
                        "missing": missing,
                        "no_scores": not scores,
                    }
                )
            else:
                pending.append(student.id)

        if blocking:
            logger.warning(
                "Bulk submit for group=%s judge=%s blocked by %d student(s)", group_id, judge_id, len(blocking)
            )
            raise IncompleteSubmissionError(blocking)

        self.store.submit_many((student_id, judge_id) for student_id in pending)
        logger.info("Bulk submitted %d student(s) for group=%s judge=%s", len(pending), group_id, judge_id)
        return pending
