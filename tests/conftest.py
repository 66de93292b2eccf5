"""Test configuration and fixtures."""

from types import SimpleNamespace

import pytest

from judging.service import JudgingService
from judging.store import JudgingStore


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite file per test."""
    s = JudgingStore(str(tmp_path / "judging.sqlite"))
    s.init_db()
    return s


@pytest.fixture
def service(store):
    return JudgingService(store)


@pytest.fixture
def seeded(service):
    """One grade, two judges, three students and a six-criterion rubric.

    Four criteria are required (Ideas Example, Content, Delivery,
    Confidence); Overtime is a penalty by keyword, Reading Sentences by flag.
    """
    store = service.store
    grade = store.add_group("Grade 5")
    other = store.add_group("Grade 6")

    ideas = store.add_criterion("Ideas Example")
    content = store.add_criterion("Content", 1, 10)
    delivery = store.add_criterion("Delivery", 1, 10)
    confidence = store.add_criterion("Confidence", 1, 10)
    overtime = store.add_criterion("Overtime")
    reading = store.add_criterion("Reading Sentences", 0, 5, is_penalty=True)

    j1 = service.add_judge("Judge One", "judge1", "pw1")
    j2 = service.add_judge("Judge Two", "judge2", "pw2")
    service.graph.assign_judge_to_group(j1.id, grade.id)
    service.graph.assign_judge_to_group(j2.id, grade.id)

    amar = store.add_student("Amar", grade.id)
    zara = store.add_student("Zara", grade.id)
    bela = store.add_student("Bela", grade.id)
    loner = store.add_student("Loner")

    return SimpleNamespace(
        store=store,
        service=service,
        grade=grade,
        other=other,
        ideas=ideas,
        content=content,
        delivery=delivery,
        confidence=confidence,
        overtime=overtime,
        reading=reading,
        required=[ideas, content, delivery, confidence],
        j1=j1,
        j2=j2,
        amar=amar,
        zara=zara,
        bela=bela,
        loner=loner,
    )


def score_all(service, student, judge, values):
    """Write {criterion: value} for one pair."""
    for criterion, value in values.items():
        service.submit_score(student.id, judge.id, criterion.id, value)


@pytest.fixture
def fill():
    return score_all
