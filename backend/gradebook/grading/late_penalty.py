"""
Late penalty calculation and application.

A submission finalized after its due date loses ``late_submission_penalty``
percent per started day late. The penalty stops growing after the
assignment's ``max_late_days`` and never exceeds 100%; the record still
shows the actual days late. The grade before the penalty is kept on the
LateSubmissionRecord so that re-applying, regrading and waiving all start
from the raw grade and never stack.
"""

import math
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..database import unit_of_work
from ..models import LateSubmissionRecord
from .clock import Clock, as_utc, utcnow
from .exceptions import NotFoundError, StateConflictError, ValidationError
from .notifications import Notifier, PENALTY_WAIVED, default_notifier, notify_quietly
from .primitives import round_score
from .queries import get_submission

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
MAX_PENALTY_PERCENTAGE = 100.0


def compute_days_late(submitted_at: Optional[datetime], due_date: Optional[datetime]) -> int:
    """Started days between the due date and submission; 0 when on time."""
    if submitted_at is None or due_date is None:
        return 0
    seconds = (as_utc(submitted_at) - as_utc(due_date)).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / SECONDS_PER_DAY)


def compute_penalty_percentage(days_late: int, rate_per_day: float, max_late_days: Optional[int] = None) -> float:
    if days_late <= 0 or not rate_per_day:
        return 0.0
    if max_late_days is not None:
        days_late = min(days_late, max_late_days)
    return round_score(min(days_late * rate_per_day, MAX_PENALTY_PERCENTAGE))


def apply_penalty(grade: float, penalty_percentage: float) -> float:
    """Reduce a grade by a percentage, never below zero."""
    return max(round_score(grade * (1 - penalty_percentage / 100)), 0.0)


class LatePenaltyService:
    def __init__(self, db: Session, notifier: Optional[Notifier] = None, clock: Clock = utcnow):
        self.db = db
        self.notifier = notifier if notifier is not None else default_notifier()
        self.clock = clock

    def apply_late_penalty(
        self, submission_id: int, original_grade: Optional[float] = None
    ) -> Optional[LateSubmissionRecord]:
        """
        Compute the penalty for a submission and write the penalized grade.

        ``original_grade`` is the raw grade to penalize. When omitted it is
        taken from the existing record, or from the submission's grade if
        there is no record yet. Applying twice with the same inputs leaves
        the same record and grade.

        A waived record stays waived: the grade is left at the raw value and
        only the record's audit fields follow a regrade.

        Returns:
            The LateSubmissionRecord, or None when the submission is on time,
            late submissions are not penalized, or there is no grade yet.
        """
        submission = get_submission(self.db, submission_id)
        assignment = submission.assignment
        record = submission.late_record
        version = submission.final_version

        if original_grade is None:
            if record is not None:
                original_grade = record.original_grade
            else:
                original_grade = submission.grade
        if original_grade is None or version is None:
            return None

        days_late = compute_days_late(version.submitted_at, assignment.due_date)
        if days_late <= 0 or not assignment.allow_late_submissions:
            if record is not None:
                with unit_of_work(self.db):
                    if not record.waived:
                        self._set_grade(submission, original_grade)
                    submission.late_record = None
                logger.info(f"Removed late penalty for submission {submission.id}; no longer late")
            return None

        penalty = compute_penalty_percentage(
            days_late, assignment.late_submission_penalty, assignment.max_late_days
        )
        final_grade = apply_penalty(original_grade, penalty)

        with unit_of_work(self.db):
            if record is None:
                record = LateSubmissionRecord(submission_id=submission.id, penalty_applied_at=self.clock())
                submission.late_record = record
            elif (record.days_late, record.penalty_percentage, record.original_grade, record.final_grade) != (
                days_late, penalty, original_grade, final_grade
            ):
                record.penalty_applied_at = self.clock()
            record.days_late = days_late
            record.penalty_percentage = penalty
            record.original_grade = original_grade
            record.final_grade = final_grade
            self._set_grade(submission, original_grade if record.waived else final_grade)

        logger.info(
            f"Late penalty for submission {submission.id}: {days_late} days, {penalty}% "
            f"({original_grade} -> {final_grade}{', waived' if record.waived else ''})"
        )
        return record

    def waive_late_penalty(self, submission_id: int, waived_by: int, reason: str) -> LateSubmissionRecord:
        """
        Waive a submission's late penalty and restore its original grade.

        Raises:
            NotFoundError: if the submission has no late penalty record.
            StateConflictError: if the penalty is already waived.
            ValidationError: if no reason is given.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to waive a late penalty", field="reason")

        submission = get_submission(self.db, submission_id)
        record = submission.late_record
        if record is None:
            raise NotFoundError("LateSubmissionRecord", submission_id, f"No late penalty found for submission {submission_id}")
        if record.waived:
            raise StateConflictError(f"Late penalty for submission {submission_id} is already waived", current_state="waived")

        with unit_of_work(self.db):
            record.waived_by = waived_by
            record.waived_reason = reason.strip()
            record.waived_at = self.clock()
            self._set_grade(submission, record.original_grade)

        logger.info(f"Late penalty for submission {submission.id} waived by {waived_by}")
        notify_quietly(self.notifier, PENALTY_WAIVED, {
            "submission_id": submission.id,
            "student_id": submission.student_id,
            "assignment_id": submission.assignment_id,
            "grade": submission.grade,
            "waived_by": waived_by,
        })
        return record

    def _set_grade(self, submission, grade: Optional[float]) -> None:
        if submission.grade != grade:
            submission.grade = grade
            submission.updated_at = self.clock()
