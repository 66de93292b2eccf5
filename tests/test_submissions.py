"""Submission lock, bulk submit and super judge corrections."""

import pytest

from judging.errors import IncompleteSubmissionError, LockedError, NotFoundError, ScoreRangeError


def complete(seeded, fill, student, judge, value=5):
    fill(seeded.service, student, judge, {c: value for c in seeded.required})


class TestSubmit:
    def test_submit_reports_status(self, seeded, fill):
        svc = seeded.service
        complete(seeded, fill, seeded.amar, seeded.j1)
        status = svc.submit(seeded.amar.id, seeded.j1.id)
        assert status["submitted"] is True
        assert status["missing_required"] == []
        assert status["total"] == 20

    def test_resubmit_is_noop(self, seeded):
        svc = seeded.service
        assert svc.submissions.submit(seeded.amar.id, seeded.j1.id) is True
        assert svc.submissions.submit(seeded.amar.id, seeded.j1.id) is False
        assert svc.submissions.is_submitted(seeded.amar.id, seeded.j1.id)

    def test_unlock_returns_to_draft(self, seeded):
        svc = seeded.service
        svc.submit(seeded.amar.id, seeded.j1.id)
        status = svc.unlock(seeded.amar.id, seeded.j1.id)
        assert status["submitted"] is False
        assert svc.submissions.unlock(seeded.amar.id, seeded.j1.id) is False

    def test_status_lists_missing_required(self, seeded, fill):
        svc = seeded.service
        fill(svc, seeded.amar, seeded.j1, {seeded.content: 6, seeded.overtime: 1})
        status = svc.submissions.submission_status(seeded.amar.id, seeded.j1.id)
        assert status["missing_required"] == ["Ideas Example", "Delivery", "Confidence"]
        assert status["scored"] == ["Content", "Overtime"]
        assert status["total"] == 5

    def test_submit_unknown_student(self, seeded):
        with pytest.raises(NotFoundError):
            seeded.service.submit("ghost", seeded.j1.id)


class TestSubmitAllForGroup:
    def test_all_complete(self, seeded, fill):
        svc = seeded.service
        for student in (seeded.amar, seeded.zara, seeded.bela):
            complete(seeded, fill, student, seeded.j1)
        done = svc.submit_all_for_group(seeded.grade.id, seeded.j1.id)
        assert sorted(done) == sorted([seeded.amar.id, seeded.zara.id, seeded.bela.id])
        for student in (seeded.amar, seeded.zara, seeded.bela):
            assert svc.submissions.is_submitted(student.id, seeded.j1.id)
            assert not svc.submissions.is_submitted(student.id, seeded.j2.id)

    def test_already_submitted_are_skipped(self, seeded, fill):
        svc = seeded.service
        svc.submit(seeded.amar.id, seeded.j1.id)
        complete(seeded, fill, seeded.zara, seeded.j1)
        complete(seeded, fill, seeded.bela, seeded.j1)
        done = svc.submit_all_for_group(seeded.grade.id, seeded.j1.id)
        assert sorted(done) == sorted([seeded.zara.id, seeded.bela.id])

    def test_incomplete_student_blocks_whole_batch(self, seeded, fill):
        svc = seeded.service
        complete(seeded, fill, seeded.amar, seeded.j1)
        fill(svc, seeded.zara, seeded.j1, {seeded.ideas: 3, seeded.content: 7, seeded.delivery: 7})
        with pytest.raises(IncompleteSubmissionError) as exc:
            svc.submit_all_for_group(seeded.grade.id, seeded.j1.id)

        blocking = {b["student_name"]: b for b in exc.value.blocking}
        assert set(blocking) == {"Zara", "Bela"}
        assert blocking["Zara"]["missing"] == ["Confidence"]
        assert blocking["Zara"]["no_scores"] is False
        assert blocking["Bela"]["no_scores"] is True
        assert "Zara: Confidence" in str(exc.value)
        assert "Bela" in str(exc.value)
        # nothing in the batch was submitted
        for student in (seeded.amar, seeded.zara, seeded.bela):
            assert not svc.submissions.is_submitted(student.id, seeded.j1.id)

    def test_penalties_not_required(self, seeded, fill):
        svc = seeded.service
        for student in (seeded.amar, seeded.zara, seeded.bela):
            complete(seeded, fill, student, seeded.j1)
        fill(svc, seeded.zara, seeded.j1, {seeded.overtime: 2})
        assert len(svc.submit_all_for_group(seeded.grade.id, seeded.j1.id)) == 3

    def test_judge_not_assigned(self, seeded):
        svc = seeded.service
        with pytest.raises(NotFoundError):
            svc.submit_all_for_group(seeded.other.id, seeded.j1.id)

    def test_unknown_group(self, seeded):
        with pytest.raises(NotFoundError):
            seeded.service.submit_all_for_group("ghost", seeded.j1.id)


class TestCorrections:
    def test_unlock_and_edit(self, seeded, fill):
        svc = seeded.service
        complete(seeded, fill, seeded.amar, seeded.j1)
        svc.submit(seeded.amar.id, seeded.j1.id)

        scores = svc.unlock_and_edit(seeded.amar.id, seeded.j1.id, {seeded.content.id: 9, seeded.overtime.id: 1})
        assert scores[seeded.content.id] == 9
        assert scores[seeded.overtime.id] == 1
        assert svc.submissions.is_submitted(seeded.amar.id, seeded.j1.id)
        # locked again afterwards
        with pytest.raises(LockedError):
            svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 4)

    def test_failed_correction_leaves_pair_unlocked(self, seeded, fill):
        svc = seeded.service
        complete(seeded, fill, seeded.amar, seeded.j1)
        svc.submit(seeded.amar.id, seeded.j1.id)

        with pytest.raises(ScoreRangeError):
            svc.unlock_and_edit(seeded.amar.id, seeded.j1.id, {seeded.content.id: 8, seeded.ideas.id: 9})
        assert not svc.submissions.is_submitted(seeded.amar.id, seeded.j1.id)
        assert svc.ledger.get_score(seeded.amar.id, seeded.j1.id, seeded.content.id) == 8
        assert svc.ledger.get_score(seeded.amar.id, seeded.j1.id, seeded.ideas.id) == 5


def test_unlock_edit_resubmit(seeded, fill):
    svc = seeded.service
    complete(seeded, fill, seeded.amar, seeded.j1)
    svc.submit(seeded.amar.id, seeded.j1.id)

    svc.unlock(seeded.amar.id, seeded.j1.id)
    svc.submit_score(seeded.amar.id, seeded.j1.id, seeded.content.id, 9)
    svc.submit(seeded.amar.id, seeded.j1.id)

    assert svc.submissions.is_submitted(seeded.amar.id, seeded.j1.id)
    assert svc.ledger.get_score(seeded.amar.id, seeded.j1.id, seeded.content.id) == 9
