"""One object wiring the grading services to a shared session and collaborators."""

from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..models import LateSubmissionRecord, Submission, SubmissionStatus, SubmissionVersion
from .analytics import AnalyticsAggregator, AnalyticsSnapshot, CourseAnalytics, CourseGrade
from .clock import Clock, utcnow
from .grading_service import GradingService
from .late_penalty import LatePenaltyService
from .notifications import Notifier, default_notifier
from .objective_grader import AutoGradeRun, ObjectiveGradeResult, ObjectiveGrader
from .questions import QuizSummary
from .rubric_engine import RubricResult, calculate_rubric_grade, calculate_weighted_rubric_grade
from .schemas import SubmissionContent
from .storage import FileStorage, LocalFileStorage
from .versions import SubmissionStore


class GradingEngine:
    """
    Entry point for the submission and grading operations.

    Example:
        >>> engine = GradingEngine(db)
        >>> submission = engine.save_draft(assignment_id, student_id, {"text": "Draft"})
        >>> submission = engine.submit_final(submission.id)
        >>> engine.get_assignment_analytics(assignment_id).performance.completion_rate
    """

    def __init__(
        self,
        db: Session,
        storage: Optional[FileStorage] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        notifier = notifier if notifier is not None else default_notifier()
        self.penalties = LatePenaltyService(db, notifier=notifier, clock=clock)
        self.grader = ObjectiveGrader(db, notifier=notifier, clock=clock, penalties=self.penalties)
        self.store = SubmissionStore(
            db,
            storage=storage if storage is not None else LocalFileStorage(),
            notifier=notifier,
            clock=clock,
            grader=self.grader,
            penalties=self.penalties,
        )
        self.grading = GradingService(db, notifier=notifier, clock=clock, penalties=self.penalties)
        self.analytics = AnalyticsAggregator(db)

    # Submission version store
    def save_draft(
        self, assignment_id: int, student_id: int, content: Union[SubmissionContent, dict, None], auto_saved: bool = False
    ) -> Submission:
        return self.store.save_draft(assignment_id, student_id, content, auto_saved=auto_saved)

    def submit_final(self, submission_id: int, content: Union[SubmissionContent, dict, None] = None) -> Submission:
        return self.store.submit_final(submission_id, content)

    def get_submission(self, submission_id: int) -> Submission:
        return self.store.get_with_versions(submission_id)

    def get_latest_version(self, assignment_id: int, student_id: int) -> SubmissionVersion:
        return self.store.get_latest_version(assignment_id, student_id)

    def list_submissions(self, assignment_id: int, status: Optional[SubmissionStatus] = None) -> List[Submission]:
        return self.store.list_submissions(assignment_id, status)

    def delete_version(self, version_id: int) -> List[str]:
        return self.store.delete_version(version_id)

    # Objective grading
    def define_quiz_questions(self, assignment_id: int, questions: Any) -> QuizSummary:
        return self.grader.define_quiz_questions(assignment_id, questions)

    def auto_grade(self, submission_id: int) -> Optional[ObjectiveGradeResult]:
        return self.grader.auto_grade(submission_id)

    def auto_grade_assignment(self, assignment_id: int) -> AutoGradeRun:
        return self.grader.auto_grade_assignment(assignment_id)

    # Late penalties
    def apply_late_penalty(self, submission_id: int) -> Optional[LateSubmissionRecord]:
        return self.penalties.apply_late_penalty(submission_id)

    def waive_late_penalty(self, submission_id: int, waived_by: int, reason: str) -> LateSubmissionRecord:
        return self.penalties.waive_late_penalty(submission_id, waived_by, reason)

    # Rubrics and manual grading
    @staticmethod
    def calculate_rubric_grade(rubric, scores: Mapping[str, Any], weighted: bool = False) -> RubricResult:
        if weighted:
            return calculate_weighted_rubric_grade(rubric, scores)
        return calculate_rubric_grade(rubric, scores)

    def grade_submission(
        self, submission_id: int, grade: float, feedback: Optional[str] = None, graded_by: Optional[int] = None
    ) -> Submission:
        return self.grading.grade_submission(submission_id, grade, feedback, graded_by)

    def grade_with_rubric(
        self, submission_id: int, rubric_id: int, scores: Mapping[str, Any],
        graded_by: Optional[int] = None, feedback: Optional[str] = None,
    ) -> Tuple[Submission, RubricResult]:
        return self.grading.grade_with_rubric(submission_id, rubric_id, scores, graded_by, feedback)

    def bulk_grade(self, items: Iterable[Any]) -> List[Submission]:
        return self.grading.bulk_grade(items)

    # Analytics
    def get_assignment_analytics(self, assignment_id: int) -> AnalyticsSnapshot:
        return self.analytics.get_assignment_analytics(assignment_id)

    def get_course_analytics(self, course_id: int) -> CourseAnalytics:
        return self.analytics.get_course_analytics(course_id)

    def calculate_course_grade(self, student_id: int, course_id: int) -> CourseGrade:
        return self.analytics.calculate_course_grade(student_id, course_id)
