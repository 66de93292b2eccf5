"""Repository behaviour: migrations, cascades, stale listings."""

import sqlite3

import pytest

from judging.errors import ConflictError, NotFoundError, RubricError, StoreError
from judging.rubric import resolve_range
from judging.store import JudgingStore


def test_old_criteria_table_is_migrated(tmp_path):
    path = str(tmp_path / "old.sqlite")
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE criteria (id TEXT PRIMARY KEY, name TEXT NOT NULL)")
    conn.execute("INSERT INTO criteria VALUES ('c1', 'Ideas Example')")
    conn.commit()
    conn.close()

    store = JudgingStore(path)
    store.init_db()
    store.init_db()
    criterion = store.get_criterion("c1")
    assert criterion.min_score is None and criterion.max_score is None
    assert criterion.is_penalty is False


def test_migrate_criterion_ranges(service):
    legacy = service.store.add_criterion("Ideas Example")
    penalty = service.store.add_criterion("Overtime", None, 3)
    explicit = service.add_criterion("Content", 1, 10)

    migrated = {c.id: (c.min_score, c.max_score) for c in service.migrate_criterion_ranges()}
    assert migrated == {legacy.id: (1, 5), penalty.id: (0, 3)}
    assert service.store.get_criterion(explicit.id).max_score == 10
    assert service.migrate_criterion_ranges() == []


def test_add_criterion_rejects_inverted_range(service):
    with pytest.raises(ValueError):
        service.add_criterion("Content", 8, 2)


@pytest.mark.parametrize(
    "name,lo,hi",
    [("Ideas Example", 7, None), ("Delivery", None, 0), ("Overtime", 6, None)],
)
def test_add_criterion_checks_resolved_range(service, name, lo, hi):
    with pytest.raises(RubricError):
        service.add_criterion(name, lo, hi)
    assert service.store.get_criteria() == []


def test_add_criterion_single_bound_inside_legacy_range(service):
    criterion = service.add_criterion("Ideas Example", min_score=2)
    assert resolve_range(criterion) == (2, 5)


def test_migration_skips_empty_ranges(service):
    stored = service.store.add_criterion("Ideas Example", 7, None)
    assert service.migrate_criterion_ranges() == []
    assert service.store.get_criterion(stored.id).max_score is None


def test_groups_in_natural_order(store):
    for name in ("Grade 10", "Grade 2", "grade 1", "Kindergarten", "Grade 11"):
        store.add_group(name)
    assert [g.name for g in store.get_groups()] == ["grade 1", "Grade 2", "Grade 10", "Grade 11", "Kindergarten"]


def test_group_lookup_by_name_ignores_case(store):
    group = store.add_group("Grade 5")
    assert store.get_group_by_name("  grade 5 ") == group
    assert store.get_group_by_name("Grade 6") is None


def test_criteria_keep_insertion_order(store):
    names = ["Zeal", "Accuracy", "Middle"]
    for name in names:
        store.add_criterion(name)
    assert [c.name for c in store.get_criteria()] == names


def test_remove_criterion_drops_its_scores(seeded):
    svc = seeded.service
    svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 5)
    seeded.store.remove_criterion(seeded.content.id)
    assert svc.ledger.all_scores_for(seeded.amar.id, seeded.j1.id) == {}
    with pytest.raises(NotFoundError):
        seeded.store.remove_criterion(seeded.content.id)


def test_remove_student_cascades(seeded):
    svc, store = seeded.service, seeded.store
    svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 5)
    svc.submit(seeded.amar.id, seeded.j1.id)
    store.set_note(seeded.amar.id, seeded.j1.id, "clear voice")
    store.remove_student(seeded.amar.id)
    assert store.get_all_scores() == []
    assert store.get_all_submissions() == set()
    assert store.get_note(seeded.amar.id, seeded.j1.id) is None


def test_remove_judge_cascades(seeded):
    svc, store = seeded.service, seeded.store
    svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 5)
    store.remove_judge(seeded.j1.id)
    assert store.get_all_scores() == []
    assert store.get_group_judges(seeded.grade.id) == [seeded.j2.id]


def test_notes_upsert(seeded):
    store = seeded.store
    assert store.get_note(seeded.amar.id, seeded.j1.id) is None
    store.set_note(seeded.amar.id, seeded.j1.id, "first")
    store.set_note(seeded.amar.id, seeded.j1.id, "second")
    assert store.get_note(seeded.amar.id, seeded.j1.id) == "second"


def test_duplicate_username(seeded):
    with pytest.raises(ConflictError):
        seeded.service.add_judge("Another", "judge1", "x")


def test_stale_listing_after_failure(seeded, tmp_path):
    store = seeded.store
    fresh = [g.name for g in store.get_groups()]
    store.path = str(tmp_path / "missing" / "db.sqlite")
    with pytest.raises(StoreError):
        store.get_groups()
    assert [g.name for g in store.get_groups(allow_stale=True)] == fresh


def test_failed_write_rolls_back(store):
    with pytest.raises(StoreError):
        with store.connect() as conn:
            conn.execute("INSERT INTO groups(id, name, created_at) VALUES('g1', 'A', 'now')")
            conn.execute("INSERT INTO groups(id, name, created_at) VALUES('g1', 'B', 'now')")
    assert store.get_groups() == []
