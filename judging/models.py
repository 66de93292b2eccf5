"""Plain records exchanged between the store, the core and the API layer."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .timer import Countdown


class Role(str, enum.Enum):
    judge = "judge"
    superjudge = "superjudge"
    admin = "admin"


@dataclass(frozen=True)
class Principal:
    """The active user as handed over by the identity provider."""

    id: str
    role: Role
    display_name: str

    @property
    def is_judge(self) -> bool:
        return self.role is Role.judge

    @property
    def is_superjudge(self) -> bool:
        return self.role is Role.superjudge

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin


@dataclass(frozen=True)
class Criterion:
    id: str
    name: str
    min_score: Optional[int] = None
    max_score: Optional[int] = None
    is_penalty: bool = False
    position: int = 0


@dataclass(frozen=True)
class Group:
    id: str
    name: str


@dataclass(frozen=True)
class Student:
    id: str
    name: str
    group_id: Optional[str] = None


@dataclass(frozen=True)
class Judge:
    id: str
    name: str
    username: str
    password_hash: str = field(default="", repr=False)


@dataclass(frozen=True)
class SuperJudge:
    id: str
    name: str
    username: str
    password_hash: str = field(default="", repr=False)


@dataclass(frozen=True)
class Admin:
    id: str
    name: str
    username: str
    password_hash: str = field(default="", repr=False)


@dataclass(frozen=True)
class Topic:
    id: str
    name: str
    group_id: str
    time_limit: Optional[int] = None  # minutes

    def countdown(self) -> Optional[Countdown]:
        if self.time_limit is None:
            return None
        return Countdown(self.time_limit * 60)


@dataclass(frozen=True)
class JudgeBreakdown:
    judge_id: str
    judge_name: str
    total: int
    submitted: bool
    scores: Dict[str, Optional[int]]


@dataclass(frozen=True)
class StudentSummary:
    student_id: str
    student_name: str
    group_id: Optional[str]
    judges: List[JudgeBreakdown]
    total_score: int
    average_score: float
    all_submitted: bool

    @property
    def judges_considered(self) -> List[str]:
        return [j.judge_id for j in self.judges]

    @property
    def submitted_count(self) -> int:
        return sum(1 for j in self.judges if j.submitted)


@dataclass(frozen=True)
class RankedStudent:
    rank: int
    summary: StudentSummary
    place: Optional[int] = None
    place_label: Optional[str] = None
