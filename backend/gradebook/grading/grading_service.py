"""Manual, rubric-based and bulk grading of submitted work."""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..database import unit_of_work
from ..models import Submission, SubmissionStatus
from .clock import Clock, utcnow
from .exceptions import BulkGradeError, GradingError, StateConflictError, ValidationError, from_pydantic
from .late_penalty import LatePenaltyService
from .notifications import Notifier, SUBMISSION_GRADED, default_notifier, notify_quietly
from .primitives import round_score
from .queries import get_rubric, get_submission
from .rubric_engine import RubricResult, calculate_rubric_grade
from .schemas import BulkGradeItem

logger = logging.getLogger(__name__)

_bulk_items_adapter = TypeAdapter(List[BulkGradeItem])


class GradingService:
    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        clock: Clock = utcnow,
        penalties: Optional[LatePenaltyService] = None,
    ):
        self.db = db
        self.notifier = notifier if notifier is not None else default_notifier()
        self.clock = clock
        self.penalties = penalties or LatePenaltyService(db, notifier=self.notifier, clock=clock)

    def grade_submission(
        self,
        submission_id: int,
        grade: float,
        feedback: Optional[str] = None,
        graded_by: Optional[int] = None,
    ) -> Submission:
        """
        Record a grader's raw grade and apply any late penalty on top of it.

        Raises:
            NotFoundError: if the submission does not exist.
            StateConflictError: if the submission is still a draft.
            ValidationError: if the grade is outside [0, max_score].
        """
        submission = get_submission(self.db, submission_id)
        if submission.status == SubmissionStatus.draft:
            raise StateConflictError(
                f"Submission {submission_id} has not been submitted", current_state=submission.status.value
            )

        max_score = submission.assignment.max_score
        if isinstance(grade, bool) or not isinstance(grade, (int, float)):
            raise ValidationError("Grade must be a number", field="grade")
        if grade < 0 or grade > max_score:
            raise ValidationError(f"Grade must be between 0 and {max_score}", field="grade")

        grade = round_score(grade)
        with unit_of_work(self.db):
            submission.grade = grade
            if feedback is not None:
                submission.feedback = feedback
            submission.graded_by = graded_by
            submission.status = SubmissionStatus.graded
            submission.updated_at = self.clock()

        self.penalties.apply_late_penalty(submission.id, original_grade=grade)
        logger.info(f"Submission {submission.id} graded {submission.grade} by {graded_by}")
        notify_quietly(self.notifier, SUBMISSION_GRADED, {
            "submission_id": submission.id,
            "student_id": submission.student_id,
            "assignment_id": submission.assignment_id,
            "grade": submission.grade,
            "auto_graded": False,
        })
        return submission

    def grade_with_rubric(
        self,
        submission_id: int,
        rubric_id: int,
        scores: Mapping[str, Any],
        graded_by: Optional[int] = None,
        feedback: Optional[str] = None,
    ) -> Tuple[Submission, RubricResult]:
        """Score a rubric and record it as the submission's grade, scaled to the assignment's max score."""
        submission = get_submission(self.db, submission_id)
        rubric = get_rubric(self.db, rubric_id)
        if rubric.assignment_id != submission.assignment_id:
            raise ValidationError(
                f"Rubric {rubric_id} does not belong to assignment {submission.assignment_id}", field="rubric_id"
            )

        result = calculate_rubric_grade(rubric, scores)
        points = 0.0
        if result.max_score:
            points = round_score(result.total_score / result.max_score * submission.assignment.max_score)
        return self.grade_submission(submission_id, points, feedback=feedback, graded_by=graded_by), result

    def bulk_grade(self, items: Iterable[Any]) -> List[Submission]:
        """
        Grade many submissions in order, each in its own transaction.

        The whole batch is validated for shape before anything is written.
        Grading stops at the first failing item; earlier items stay committed.

        Raises:
            ValidationError: if any item is malformed.
            BulkGradeError: naming the failed submission and the ones committed.
        """
        try:
            parsed = _bulk_items_adapter.validate_python(list(items))
        except PydanticValidationError as e:
            raise from_pydantic(e, prefix="items.")

        graded: List[Submission] = []
        for item in parsed:
            try:
                graded.append(
                    self.grade_submission(item.submission_id, item.grade, item.feedback, item.graded_by)
                )
            except GradingError as e:
                logger.warning(f"Bulk grading stopped at submission {item.submission_id}: {e}")
                raise BulkGradeError(item.submission_id, e, [s.id for s in graded]) from e
        logger.info(f"Bulk graded {len(graded)} submissions")
        return graded
