"""Judge <-> group (many-to-many) and student -> group (exclusive) relations."""

from __future__ import annotations

import logging
from typing import Dict, List

from .errors import NotFoundError
from .models import Group, Judge, Student
from .store import JudgingStore

logger = logging.getLogger(__name__)


class AssignmentGraph:
    def __init__(self, store: JudgingStore):
        self.store = store

    def _require_group(self, group_id: str) -> Group:
        group = self.store.get_group(group_id)
        if group is None:
            raise NotFoundError("group", group_id)
        return group

    def _require_judge(self, judge_id: str) -> Judge:
        judge = self.store.get_judge(judge_id)
        if judge is None:
            raise NotFoundError("judge", judge_id)
        return judge

    def _require_student(self, student_id: str) -> Student:
        student = self.store.get_student(student_id)
        if student is None:
            raise NotFoundError("student", student_id)
        return student

    # -----------------------
    # Writes
    # -----------------------
    def assign_judge_to_group(self, judge_id: str, group_id: str) -> bool:
        """Duplicate assignment is a no-op; returns True when a link was added."""
        self._require_judge(judge_id)
        self._require_group(group_id)
        added = self.store.assign_judge_to_group(judge_id, group_id)
        if added:
            logger.info("Assigned judge=%s to group=%s", judge_id, group_id)
        return added

    def remove_judge_from_group(self, judge_id: str, group_id: str) -> bool:
        # Scores the judge already entered stay in the ledger.
        removed = self.store.remove_judge_from_group(judge_id, group_id)
        if removed:
            logger.info("Removed judge=%s from group=%s", judge_id, group_id)
        return removed

    def assign_student_to_group(self, student_id: str, group_id: str) -> Student:
        self._require_student(student_id)
        self._require_group(group_id)
        return self.store.update_student_group(student_id, group_id)

    def remove_student_from_group(self, student_id: str) -> Student:
        self._require_student(student_id)
        return self.store.update_student_group(student_id, None)

    def rename_group(self, group_id: str, name: str) -> Group:
        return self.store.rename_group(group_id, name)

    def delete_group(self, group_id: str) -> Dict[str, int]:
        result = self.store.delete_group(group_id)
        logger.info(
            "Deleted group=%s (students detached=%d, judges detached=%d, topics deleted=%d)",
            group_id,
            result["students_detached"],
            result["judges_detached"],
            result["topics_deleted"],
        )
        return result

    # -----------------------
    # Reads
    # -----------------------
    def groups_for_judge(self, judge_id: str) -> List[Group]:
        ids = set(self.store.get_judge_groups(judge_id))
        return [g for g in self.store.get_groups() if g.id in ids]

    def students_for_judge(self, judge_id: str) -> List[Student]:
        return self.store.get_students_in_groups(self.store.get_judge_groups(judge_id))

    def judges_for_student(self, student_id: str) -> List[Judge]:
        student = self._require_student(student_id)
        if not student.group_id or self.store.get_group(student.group_id) is None:
            return []
        ids = set(self.store.get_group_judges(student.group_id))
        return [j for j in self.store.get_judges() if j.id in ids]

    def group_stats(self, group_id: str) -> Dict:
        group = self._require_group(group_id)
        judge_ids = set(self.store.get_group_judges(group_id))
        judges = [j for j in self.store.get_judges() if j.id in judge_ids]
        students = self.store.get_students_in_group(group_id)
        return {
            "id": group.id,
            "name": group.name,
            "judge_count": len(judges),
            "student_count": len(students),
            "judges": judges,
            "students": students,
        }

    def validate_assignments(self) -> List[str]:
        """Describe dangling references. Nothing is repaired here."""
        errors: List[str] = []
        groups = {g.id: g for g in self.store.get_groups()}
        judges = {j.id: j for j in self.store.get_judges()}

        for student in self.store.get_students():
            if student.group_id and student.group_id not in groups:
                errors.append(f'Student "{student.name}" is assigned to non-existent group {student.group_id}')

        for group_id, judge_id in sorted(self.store.get_group_judge_links()):
            judge = judges.get(judge_id)
            group = groups.get(group_id)
            if judge is not None and group is None:
                errors.append(f'Judge "{judge.name}" is assigned to non-existent group {group_id}')
            elif group is not None and judge is None:
                errors.append(f'Group "{group.name}" references non-existent judge {judge_id}')
            elif group is None and judge is None:
                errors.append(f"Link between missing group {group_id} and missing judge {judge_id}")

        for topic in self.store.get_topics():
            if topic.group_id not in groups:
                errors.append(f'Topic "{topic.name}" is bound to non-existent group {topic.group_id}')
        return errors
