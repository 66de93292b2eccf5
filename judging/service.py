"""
Operations exposed to the API layer.

``JudgingService`` wires the store, assignment graph, ledger, submission lock
and ranking engine together and adds the multi-step flows: super judge
corrections, bulk submission, exports and roster imports.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from . import rubric, spreadsheets
from .assignments import AssignmentGraph
from .errors import ConflictError, ImportFormatError, NotFoundError, RubricError
from .identity import IdentityProvider, hash_password
from .ledger import ScoreLedger
from .models import Criterion, Judge, RankedStudent, StudentSummary
from .ranking import RankingEngine
from .store import JudgingStore
from .submissions import PairLocks, SubmissionLock

logger = logging.getLogger(__name__)


class JudgingService:
    def __init__(self, store: JudgingStore, session_ttl_hours: int = 12):
        self.store = store
        self.locks = PairLocks()
        self.graph = AssignmentGraph(store)
        self.ledger = ScoreLedger(store, self.locks)
        self.submissions = SubmissionLock(store, self.locks)
        self.ranking = RankingEngine(store, self.graph)
        self.identity = IdentityProvider(store, session_ttl_hours)

    # -----------------------
    # Rubric
    # -----------------------
    def add_criterion(
        self,
        name: str,
        min_score: Optional[int] = None,
        max_score: Optional[int] = None,
        is_penalty: bool = False,
    ) -> Criterion:
        # a single bound is completed from the legacy table, check what it resolves to
        lo, hi = rubric.resolve_range(Criterion(id="", name=name, min_score=min_score, max_score=max_score))
        if lo > hi:
            raise RubricError(f"Criterion '{name}' would have an empty range [{lo}, {hi}].")
        return self.store.add_criterion(name, min_score, max_score, is_penalty)

    def migrate_criterion_ranges(self) -> List[Criterion]:
        """Persist the resolved range on criteria still relying on the name table."""
        migrated = []
        for criterion in self.store.get_criteria():
            if criterion.min_score is not None and criterion.max_score is not None:
                continue
            lo, hi = rubric.resolve_range(criterion)
            if lo > hi:
                logger.warning("Criterion '%s' resolves to an empty range [%d, %d], not migrated", criterion.name, lo, hi)
                continue
            migrated.append(self.store.update_criterion_range(criterion.id, lo, hi))
            logger.info("Stored range [%d, %d] for legacy criterion '%s'", lo, hi, criterion.name)
        return migrated

    # -----------------------
    # Scoring
    # -----------------------
    def _require_pair(self, student_id: str, judge_id: str) -> None:
        if self.store.get_student(student_id) is None:
            raise NotFoundError("student", student_id)
        if self.store.get_judge(judge_id) is None:
            raise NotFoundError("judge", judge_id)

    def submit_score(self, student_id: str, judge_id: str, criterion_id: str, value: int) -> int:
        self._require_pair(student_id, judge_id)
        return self.ledger.set_score(student_id, judge_id, criterion_id, value)

    def save_draft(self, student_id: str, judge_id: str, scores: Mapping[str, Optional[int]]) -> Dict[str, int]:
        """Write several cells; ``None`` clears a cell back to unscored."""
        self._require_pair(student_id, judge_id)
        for criterion_id, value in scores.items():
            if value is None:
                self.ledger.clear_score(student_id, judge_id, criterion_id)
            else:
                self.ledger.set_score(student_id, judge_id, criterion_id, value)
        return self.ledger.all_scores_for(student_id, judge_id)

    def submit(self, student_id: str, judge_id: str) -> Dict:
        self._require_pair(student_id, judge_id)
        self.submissions.submit(student_id, judge_id)
        return self.submissions.submission_status(student_id, judge_id)

    def unlock(self, student_id: str, judge_id: str) -> Dict:
        self._require_pair(student_id, judge_id)
        self.submissions.unlock(student_id, judge_id)
        return self.submissions.submission_status(student_id, judge_id)

    def submit_all_for_group(self, group_id: str, judge_id: str) -> List[str]:
        if self.store.get_judge(judge_id) is None:
            raise NotFoundError("judge", judge_id)
        return self.submissions.submit_all_for_group(group_id, judge_id)

    def unlock_and_edit(self, student_id: str, judge_id: str, scores: Mapping[str, int]) -> Dict[str, int]:
        """
        Super judge correction: unlock, apply every score, submit again.

        The pair's critical section is held throughout, so other writers see
        either the old submitted scores or the new ones. If a write fails the
        pair stays unlocked with the writes made so far, and the error
        propagates.
        """
        self._require_pair(student_id, judge_id)
        with self.locks.hold(student_id, judge_id):
            self.submissions.unlock(student_id, judge_id)
            for criterion_id, value in scores.items():
                self.ledger.set_score(student_id, judge_id, criterion_id, value)
            self.submissions.submit(student_id, judge_id)
        logger.info(
            "Corrected %d score(s) for student=%s judge=%s", len(scores), student_id, judge_id
        )
        return self.ledger.all_scores_for(student_id, judge_id)

    # -----------------------
    # Aggregation
    # -----------------------
    def get_student_summary(self, student_id: str) -> StudentSummary:
        return self.ranking.compute_student_summary(student_id)

    def rank_students(self, group_id: str) -> List[RankedStudent]:
        return self.ranking.rank_group(group_id)

    def validate_assignments(self) -> List[str]:
        return self.graph.validate_assignments()

    # -----------------------
    # Export
    # -----------------------
    def export_flat_rows(self) -> List[Dict]:
        """One row per scored cell, orphaned scores included."""
        students = {s.id: s for s in self.store.get_students()}
        judges = {j.id: j for j in self.store.get_judges()}
        criteria = {c.id: c for c in self.store.get_criteria()}
        groups = {g.id: g.name for g in self.store.get_groups()}
        submitted = self.store.get_all_submissions()

        rows = []
        for student_id, judge_id, criterion_id, score in self.store.get_all_scores():
            student = students.get(student_id)
            judge = judges.get(judge_id)
            criterion = criteria.get(criterion_id)
            if student is None or judge is None or criterion is None:
                continue
            rows.append(
                {
                    "student": student.name,
                    "group": groups.get(student.group_id, "Unassigned"),
                    "judge": judge.name,
                    "criterion": criterion.name,
                    "score": score,
                    "submitted": (student_id, judge_id) in submitted,
                    "_order": (student.name.casefold(), judge.name.casefold(), criterion.position),
                }
            )
        rows.sort(key=lambda r: r["_order"])
        for row in rows:
            del row["_order"]
        return rows

    def export_csv(self) -> str:
        return spreadsheets.rows_to_csv(self.export_flat_rows())

    def export_xlsx(self) -> bytes:
        summary = self.ranking.summary_table(self.store.get_students())
        return spreadsheets.rows_to_xlsx(self.export_flat_rows(), summary)

    # -----------------------
    # Import
    # -----------------------
    def import_students(self, filename: str, content: bytes) -> Dict[str, int]:
        """Create students per row, creating any grade that does not exist yet."""
        records = spreadsheets.parse_students(spreadsheets.read_sheet(filename, content))
        groups_created = 0
        students_created = 0
        for rec in records:
            group = self.store.get_group_by_name(rec["grade"])
            if group is None:
                group = self.store.add_group(rec["grade"])
                groups_created += 1
            self.store.add_student(rec["name"], group.id)
            students_created += 1
        logger.info("Imported %d student(s), created %d grade(s)", students_created, groups_created)
        return {"groups_created": groups_created, "students_created": students_created}

    def import_judges(self, filename: str, content: bytes) -> Dict:
        """
        Create or update judges by username and assign each to its grade.

        Every referenced grade must already exist; otherwise nothing is
        imported. An existing judge loses its previous grade assignments.
        """
        records = spreadsheets.parse_judges(spreadsheets.read_sheet(filename, content))
        by_name = {g.name.lower().strip(): g for g in self.store.get_groups()}
        missing = []
        for rec in records:
            if rec["group"].lower().strip() not in by_name and rec["group"] not in missing:
                missing.append(rec["group"])
        if missing:
            raise ImportFormatError(
                f"Import failed: {', '.join(missing)} grade(s) do not exist. Please create these grades first."
            )

        created, updated = 0, 0
        for rec in records:
            group = by_name[rec["group"].lower().strip()]
            existing = self.store.get_judge_by_username(rec["username"])
            pw_hash = hash_password(rec["password"])
            if existing is not None:
                judge = self.store.update_judge(existing.id, rec["name"], rec["username"], pw_hash)
                for old_group_id in self.store.get_judge_groups(judge.id):
                    self.store.remove_judge_from_group(judge.id, old_group_id)
                updated += 1
            else:
                judge = self.store.add_judge(rec["name"], rec["username"], pw_hash)
                created += 1
            self.store.assign_judge_to_group(judge.id, group.id)
        logger.info("Imported judges: %d created, %d updated", created, updated)
        return {"judges_created": created, "judges_updated": updated}

    # -----------------------
    # Accounts
    # -----------------------
    def add_judge(self, name: str, username: str, password: str) -> Judge:
        if self.store.get_judge_by_username(username.strip()) is not None:
            raise ConflictError(f"Username '{username}' is already taken.")
        return self.store.add_judge(name, username, hash_password(password))

    def add_super_judge(self, name: str, username: str, password: str):
        if self.store.get_super_judge_by_username(username.strip()) is not None:
            raise ConflictError(f"Username '{username}' is already taken.")
        return self.store.add_super_judge(name, username, hash_password(password))
