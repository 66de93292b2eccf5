from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Union

import numpy as np
import pandas as pd

from . import rubric
from .assignments import AssignmentGraph
from .errors import NotFoundError
from .models import JudgeBreakdown, RankedStudent, Student, StudentSummary
from .store import JudgingStore

logger = logging.getLogger(__name__)

_PLACE_WORDS = ("First", "Second", "Third")


def place_label(place: int) -> str:
    if place <= len(_PLACE_WORDS):
        return f"{_PLACE_WORDS[place - 1]} Place"
    if 10 <= place % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(place % 10, "th")
    return f"{place}{suffix} Place"


class RankingEngine:
    """
    Per-student aggregation and group ranking.

    Everything is recomputed from the store on each call; no rank is cached.
    Only judges currently assigned to the student's group are counted, so
    scores left behind by a removed judge stay in the ledger but drop out of
    the totals.
    """

    def __init__(self, store: JudgingStore, graph: AssignmentGraph):
        self.store = store
        self.graph = graph

    # -----------------------
    # Aggregation
    # -----------------------
    def compute_student_summary(self, student_id: str) -> StudentSummary:
        student = self.store.get_student(student_id)
        if student is None:
            raise NotFoundError("student", student_id)
        return self._summarize(student, self.store.get_criteria())

    def _summarize(self, student: Student, criteria) -> StudentSummary:
        judges = self.graph.judges_for_student(student.id)
        ledger = self.store.scores_for_student(student.id)
        submitted = self.store.submitted_judges(student.id)

        # rows = judge, cols = criterion, NaN = unscored
        matrix = np.full((len(judges), len(criteria)), np.nan)
        for i, judge in enumerate(judges):
            cells = ledger.get(judge.id, {})
            for k, criterion in enumerate(criteria):
                if criterion.id in cells:
                    matrix[i, k] = cells[criterion.id]
        signs = np.array([rubric.polarity(c) for c in criteria], dtype=float)
        if len(judges) and len(criteria):
            judge_totals = np.nansum(matrix * signs, axis=1)
        else:
            judge_totals = np.zeros(len(judges))

        breakdown = []
        for i, judge in enumerate(judges):
            cells = ledger.get(judge.id, {})
            breakdown.append(
                JudgeBreakdown(
                    judge_id=judge.id,
                    judge_name=judge.name,
                    total=int(judge_totals[i]),
                    submitted=judge.id in submitted,
                    scores={c.id: cells.get(c.id) for c in criteria},
                )
            )

        total = int(judge_totals.sum()) if len(judges) else 0
        average = total / len(judges) if judges else 0.0
        return StudentSummary(
            student_id=student.id,
            student_name=student.name,
            group_id=student.group_id,
            judges=breakdown,
            total_score=total,
            average_score=float(average),
            all_submitted=bool(judges) and all(b.submitted for b in breakdown),
        )

    # -----------------------
    # Ranking
    # -----------------------
    def rank_students(self, students: Iterable[Union[Student, str]]) -> List[RankedStudent]:
        """
        Sort: all judges submitted first, then higher average, then name.
        Place labels go to the fully submitted prefix only.
        """
        criteria = self.store.get_criteria()
        summaries: List[StudentSummary] = []
        for s in students:
            student = s if isinstance(s, Student) else self.store.get_student(s)
            if student is None:
                raise NotFoundError("student", s)
            summaries.append(self._summarize(student, criteria))
        if not summaries:
            return []

        table = pd.DataFrame(
            {
                "AllSubmitted": [s.all_submitted for s in summaries],
                "AverageScore": [s.average_score for s in summaries],
                "SortName": [s.student_name.casefold() for s in summaries],
                "Name": [s.student_name for s in summaries],
                "StudentId": [s.student_id for s in summaries],
            }
        )
        # mergesort keeps the order stable for exact duplicates
        table = table.sort_values(
            by=["AllSubmitted", "AverageScore", "SortName", "Name", "StudentId"],
            ascending=[False, False, True, True, True],
            kind="mergesort",
        )

        ranked: List[RankedStudent] = []
        place = 0
        for rank, idx in enumerate(table.index, start=1):
            summary = summaries[idx]
            if summary.all_submitted:
                place += 1
                ranked.append(RankedStudent(rank=rank, summary=summary, place=place, place_label=place_label(place)))
            else:
                ranked.append(RankedStudent(rank=rank, summary=summary))
        return ranked

    def rank_group(self, group_id: str) -> List[RankedStudent]:
        if self.store.get_group(group_id) is None:
            raise NotFoundError("group", group_id)
        return self.rank_students(self.store.get_students_in_group(group_id))

    def summary_table(self, students: Iterable[Student]) -> pd.DataFrame:
        """Student, Group, Total Score, Number of Judges, Average Score."""
        groups: Dict[str, str] = {g.id: g.name for g in self.store.get_groups()}
        criteria = self.store.get_criteria()
        rows = []
        for student in students:
            summary = self._summarize(student, criteria)
            if not summary.judges:
                continue
            rows.append(
                {
                    "Student": student.name,
                    "Group": groups.get(student.group_id, "Unassigned"),
                    "Total Score": summary.total_score,
                    "Number of Judges": len(summary.judges),
                    "Average Score": round(summary.average_score, 2),
                }
            )
        return pd.DataFrame(rows, columns=["Student", "Group", "Total Score", "Number of Judges", "Average Score"])
