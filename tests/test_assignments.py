"""Assignment graph reads, writes and validation."""

import pytest

from judging.errors import NotFoundError


class TestJudgeGroupLinks:
    def test_assign_is_idempotent(self, seeded):
        graph = seeded.service.graph
        assert graph.assign_judge_to_group(seeded.j1.id, seeded.grade.id) is False
        assert seeded.store.get_group_judges(seeded.grade.id).count(seeded.j1.id) == 1

    def test_judge_in_many_groups(self, seeded):
        graph = seeded.service.graph
        assert graph.assign_judge_to_group(seeded.j1.id, seeded.other.id) is True
        names = [g.name for g in graph.groups_for_judge(seeded.j1.id)]
        assert names == ["Grade 5", "Grade 6"]

    def test_remove_keeps_scores(self, seeded):
        svc = seeded.service
        svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 7)
        assert svc.graph.remove_judge_from_group(seeded.j1.id, seeded.grade.id) is True
        assert svc.graph.remove_judge_from_group(seeded.j1.id, seeded.grade.id) is False
        assert svc.ledger.get_score(seeded.amar.id, seeded.j1.id, seeded.content.id) == 7

    def test_assign_unknown_judge_or_group(self, seeded):
        graph = seeded.service.graph
        with pytest.raises(NotFoundError):
            graph.assign_judge_to_group("ghost", seeded.grade.id)
        with pytest.raises(NotFoundError):
            graph.assign_judge_to_group(seeded.j1.id, "ghost")


class TestStudentGroup:
    def test_students_for_judge(self, seeded):
        names = [s.name for s in seeded.service.graph.students_for_judge(seeded.j1.id)]
        assert names == ["Amar", "Bela", "Zara"]

    def test_judges_for_student(self, seeded):
        graph = seeded.service.graph
        assert {j.id for j in graph.judges_for_student(seeded.amar.id)} == {seeded.j1.id, seeded.j2.id}
        assert graph.judges_for_student(seeded.loner.id) == []

    def test_move_student(self, seeded):
        graph = seeded.service.graph
        moved = graph.assign_student_to_group(seeded.amar.id, seeded.other.id)
        assert moved.group_id == seeded.other.id
        assert graph.judges_for_student(seeded.amar.id) == []
        assert graph.remove_student_from_group(seeded.amar.id).group_id is None


class TestGroups:
    def test_rename(self, seeded):
        graph = seeded.service.graph
        assert graph.rename_group(seeded.grade.id, "Grade Five").name == "Grade Five"
        with pytest.raises(NotFoundError):
            graph.rename_group("ghost", "x")

    def test_delete_group_detaches_everything(self, seeded):
        svc = seeded.service
        seeded.store.add_topic("Pets", seeded.grade.id, 3)
        svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 6)

        result = svc.graph.delete_group(seeded.grade.id)
        assert result == {"students_detached": 3, "judges_detached": 2, "topics_deleted": 1}
        assert seeded.store.get_student(seeded.amar.id).group_id is None
        assert seeded.store.get_judge_groups(seeded.j1.id) == []
        assert seeded.store.get_topics_by_group(seeded.grade.id) == []
        # judges and scores survive
        assert seeded.store.get_judge(seeded.j1.id) is not None
        assert svc.ledger.get_score(seeded.amar.id, seeded.j1.id, seeded.content.id) == 6
        assert svc.validate_assignments() == []

    def test_group_stats(self, seeded):
        stats = seeded.service.graph.group_stats(seeded.grade.id)
        assert stats["judge_count"] == 2
        assert stats["student_count"] == 3


class TestValidation:
    def test_clean_graph(self, seeded):
        assert seeded.service.validate_assignments() == []

    def test_reports_dangling_references(self, seeded):
        store = seeded.store
        with store.connect() as conn:
            conn.execute("UPDATE students SET group_id='gone' WHERE id=?", (seeded.bela.id,))
            conn.execute("INSERT INTO group_judges(group_id, judge_id) VALUES('gone', ?)", (seeded.j2.id,))
            conn.execute("INSERT INTO group_judges(group_id, judge_id) VALUES(?, 'nobody')", (seeded.grade.id,))
            conn.execute("INSERT INTO topics(id, name, group_id) VALUES('t1', 'Pets', 'gone')")

        errors = seeded.service.validate_assignments()
        assert 'Student "Bela" is assigned to non-existent group gone' in errors
        assert 'Judge "Judge Two" is assigned to non-existent group gone' in errors
        assert 'Group "Grade 5" references non-existent judge nobody' in errors
        assert 'Topic "Pets" is bound to non-existent group gone' in errors
        assert len(errors) == 4
        # a dangling group counts as unassigned
        assert seeded.service.graph.judges_for_student(seeded.bela.id) == []
