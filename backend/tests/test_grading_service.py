"""Test cases for manual, rubric and bulk grading."""

import pytest

from gradebook.grading.exceptions import (
    BulkGradeError, NotFoundError, StateConflictError, ValidationError,
)
from gradebook.grading.notifications import SUBMISSION_GRADED
from gradebook.models import Rubric, SubmissionStatus


class TestGradeSubmission:
    """Test cases for recording a grader's grade."""

    def test_grade_submission(self, grading, submitted_essay, notifier):
        graded = grading.grade_submission(submitted_essay.id, 87.5, feedback="Strong thesis", graded_by=100)

        assert graded.grade == 87.5
        assert graded.feedback == "Strong thesis"
        assert graded.graded_by == 100
        assert graded.status == SubmissionStatus.graded
        assert notifier.events[-1] == (SUBMISSION_GRADED, {
            "submission_id": graded.id,
            "student_id": 7,
            "assignment_id": graded.assignment_id,
            "grade": 87.5,
            "auto_graded": False,
        })

    @pytest.mark.parametrize("grade", [-1, 100.01, "A", True])
    def test_out_of_bounds_grade(self, grading, submitted_essay, grade):
        with pytest.raises(ValidationError):
            grading.grade_submission(submitted_essay.id, grade)

    def test_boundary_grades_accepted(self, grading, submitted_essay):
        assert grading.grade_submission(submitted_essay.id, 0).grade == 0
        assert grading.grade_submission(submitted_essay.id, 100).grade == 100

    def test_draft_cannot_be_graded(self, grading, sample_assignment):
        draft = grading.save_draft(sample_assignment.id, 7, {"text": "wip"})
        with pytest.raises(StateConflictError):
            grading.grade_submission(draft.id, 50)

    def test_unknown_submission(self, grading):
        with pytest.raises(NotFoundError):
            grading.grade_submission(404, 50)


class TestGradeWithRubric:
    """Test cases for rubric-based grading."""

    def test_rubric_grade_scaled_to_max_score(self, grading, db_session, assignment_factory, clock):
        assignment = assignment_factory(max_score=50)
        rubric = Rubric(assignment_id=assignment.id, name="Lab", criteria=[
            {"name": "Method", "maxPoints": 10},
            {"name": "Results", "maxPoints": 10},
        ])
        db_session.add(rubric)
        db_session.commit()
        draft = grading.save_draft(assignment.id, 7, {"text": "Lab report"})
        submission = grading.submit_final(draft.id)

        graded, result = grading.grade_with_rubric(submission.id, rubric.id, {"Method": 9, "Results": 7})

        assert result.percentage == 80
        assert result.letter_grade == "B"
        assert graded.grade == 40

    def test_rubric_from_other_assignment(self, grading, db_session, submitted_essay, assignment_factory):
        other = assignment_factory(title="Other")
        rubric = Rubric(assignment_id=other.id, name="Other", criteria=[{"name": "A", "maxPoints": 5}])
        db_session.add(rubric)
        db_session.commit()

        with pytest.raises(ValidationError):
            grading.grade_with_rubric(submitted_essay.id, rubric.id, {"A": 5})

    def test_invalid_score_leaves_grade_untouched(self, grading, submitted_essay, sample_rubric):
        with pytest.raises(ValidationError):
            grading.grade_with_rubric(submitted_essay.id, sample_rubric.id, {"1": 30})
        assert submitted_essay.grade is None

    def test_unknown_rubric(self, grading, submitted_essay):
        with pytest.raises(NotFoundError):
            grading.grade_with_rubric(submitted_essay.id, 999, {})


class TestBulkGrade:
    """Test cases for bulk grading."""

    def _submitted(self, grading, assignment, student_ids):
        ids = []
        for student_id in student_ids:
            draft = grading.save_draft(assignment.id, student_id, {"text": "essay"})
            ids.append(grading.submit_final(draft.id).id)
        return ids

    def test_bulk_grade(self, grading, sample_assignment):
        ids = self._submitted(grading, sample_assignment, [1, 2, 3])

        graded = grading.bulk_grade([
            {"submission_id": ids[0], "grade": 70},
            {"submission_id": ids[1], "grade": 80, "feedback": "Good"},
            {"submission_id": ids[2], "grade": 90},
        ])

        assert [s.grade for s in graded] == [70, 80, 90]
        assert graded[1].feedback == "Good"

    def test_failure_keeps_earlier_items(self, grading, sample_assignment):
        """Test per-item commits: items before the failure stay graded."""
        ids = self._submitted(grading, sample_assignment, [1, 2, 3])

        with pytest.raises(BulkGradeError) as exc_info:
            grading.bulk_grade([
                {"submission_id": ids[0], "grade": 70},
                {"submission_id": ids[1], "grade": 150},
                {"submission_id": ids[2], "grade": 90},
            ])

        error = exc_info.value
        assert error.failed_submission_id == ids[1]
        assert error.committed_ids == [ids[0]]
        assert isinstance(error.cause, ValidationError)
        graded = {s.id: s.grade for s in grading.list_submissions(sample_assignment.id)}
        assert graded == {ids[0]: 70, ids[1]: None, ids[2]: None}

    def test_malformed_batch_writes_nothing(self, grading, sample_assignment):
        ids = self._submitted(grading, sample_assignment, [1])

        with pytest.raises(ValidationError):
            grading.bulk_grade([{"submission_id": ids[0], "grade": 70}, {"grade": 80}])

        assert grading.list_submissions(sample_assignment.id)[0].grade is None
