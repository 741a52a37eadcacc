"""
Submission version store.

Every save appends a SubmissionVersion; nothing is edited in place. Version
numbers are allocated inside the same transaction that writes the version,
under a row lock on the submission, and the unique constraint on
(submission_id, version_number) backs that up. File bytes are written to
storage before the transaction starts and removed again if it fails.
"""

import logging
from typing import Any, Callable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..database import unit_of_work
from ..models import Assignment, Submission, SubmissionFile, SubmissionStatus, SubmissionVersion
from .clock import Clock, as_utc, utcnow
from .exceptions import StateConflictError, ValidationError, NotFoundError, from_pydantic
from .late_penalty import LatePenaltyService
from .notifications import Notifier, default_notifier
from .objective_grader import ObjectiveGrader
from .queries import find_submission, get_assignment, get_submission, get_version
from .schemas import SubmissionContent
from .storage import FileStorage, LocalFileStorage, StoredFile

logger = logging.getLogger(__name__)

VERSION_ALLOCATION_ATTEMPTS = 3


def _coerce_content(content: Union[SubmissionContent, dict, None]) -> SubmissionContent:
    if content is None:
        return SubmissionContent()
    if isinstance(content, SubmissionContent):
        return content
    try:
        return SubmissionContent.model_validate(content)
    except PydanticValidationError as e:
        raise from_pydantic(e, prefix="content.")


class SubmissionStore:
    """Draft saving, final submission and version history for submissions."""

    def __init__(
        self,
        db: Session,
        storage: Optional[FileStorage] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utcnow,
        grader: Optional[ObjectiveGrader] = None,
        penalties: Optional[LatePenaltyService] = None,
    ):
        self.db = db
        self.storage = storage if storage is not None else LocalFileStorage()
        self.notifier = notifier if notifier is not None else default_notifier()
        self.clock = clock
        self.penalties = penalties or LatePenaltyService(db, notifier=self.notifier, clock=clock)
        self.grader = grader or ObjectiveGrader(db, notifier=self.notifier, clock=clock, penalties=self.penalties)

    def save_draft(
        self,
        assignment_id: int,
        student_id: int,
        content: Union[SubmissionContent, dict, None],
        auto_saved: bool = False,
    ) -> Submission:
        """
        Append a draft version, creating the submission on first save.

        Saving on a submitted or graded submission reopens it when the
        assignment allows resubmission; the grade and late record are
        cleared and every earlier version is kept.

        Raises:
            NotFoundError: if the assignment does not exist.
            StateConflictError: if the submission is closed for editing.
            DependencyFailureError: if file storage fails; nothing is saved.
        """
        assignment = get_assignment(self.db, assignment_id)
        content = _coerce_content(content)
        self._check_editable(assignment, find_submission(self.db, assignment_id, student_id))

        stored = self._store_files(content)
        try:
            submission = self._with_version_retry(
                lambda: self._write_draft(assignment, student_id, content, auto_saved, stored)
            )
        except BaseException:
            self._discard(stored)
            raise

        logger.info(
            f"Saved draft v{submission.latest_version.version_number} of submission {submission.id} "
            f"(student {student_id}, assignment {assignment_id}{', auto-saved' if auto_saved else ''})"
        )
        return submission

    def submit_final(self, submission_id: int, content: Union[SubmissionContent, dict, None] = None) -> Submission:
        """
        Finalize a draft submission as a new version.

        Without ``content`` the latest version's text, answers and files are
        carried into the finalized version. After the submission is committed
        it is auto-graded when the assignment enables it, and the late
        penalty is applied.

        Raises:
            NotFoundError: if the submission does not exist.
            StateConflictError: if the submission is not a draft, the due date
                has passed and late work is refused, or no attempts remain.
            ValidationError: if there is nothing to submit.
        """
        submission = get_submission(self.db, submission_id)
        assignment = submission.assignment
        now = self.clock()
        self._check_submittable(submission, assignment, now)
        if content is None and submission.latest_version is None:
            raise ValidationError("Submission has no content to submit", field="content")

        content = _coerce_content(content) if content is not None else None
        stored = self._store_files(content) if content is not None else []
        try:
            submission = self._with_version_retry(lambda: self._write_final(submission.id, content, stored, now))
        except BaseException:
            self._discard(stored)
            raise

        logger.info(
            f"Submission {submission.id} finalized as v{submission.latest_version.version_number} "
            f"(attempt {submission.attempt_count})"
        )

        if assignment.auto_grading_enabled and assignment.grading_rules:
            self.grader.auto_grade(submission.id)
        else:
            self.penalties.apply_late_penalty(submission.id)
        self.db.refresh(submission)
        return submission

    def get_latest_version(self, assignment_id: int, student_id: int) -> SubmissionVersion:
        submission = find_submission(self.db, assignment_id, student_id)
        if submission is None or submission.latest_version is None:
            raise NotFoundError(
                "Submission", f"{assignment_id}/{student_id}",
                f"No submission by student {student_id} for assignment {assignment_id}",
            )
        return submission.latest_version

    def get_with_versions(self, submission_id: int) -> Submission:
        """Load a submission together with its full version history."""
        submission = self.db.query(Submission).options(
            selectinload(Submission.versions).selectinload(SubmissionVersion.files),
            selectinload(Submission.late_record),
        ).filter(Submission.id == submission_id).first()
        if submission is None:
            raise NotFoundError("Submission", submission_id)
        return submission

    def list_submissions(self, assignment_id: int, status: Optional[SubmissionStatus] = None) -> List[Submission]:
        get_assignment(self.db, assignment_id)
        query = self.db.query(Submission).filter(Submission.assignment_id == assignment_id)
        if status is not None:
            query = query.filter(Submission.status == status)
        return query.order_by(Submission.student_id, Submission.id).all()

    def delete_version(self, version_id: int) -> List[str]:
        """
        Delete a superseded draft version.

        The latest version and finalized versions are never deleted. File
        bytes are removed only when no remaining version references them.

        Returns:
            The stored filenames whose bytes were released.
        """
        version = get_version(self.db, version_id)
        submission = version.submission
        if version.id == submission.latest_version.id:
            raise StateConflictError("The latest version of a submission cannot be deleted")
        if not version.is_draft:
            raise StateConflictError("Finalized versions are kept for the audit trail")

        version_number = version.version_number
        with unit_of_work(self.db):
            filenames = {file.stored_filename for file in version.files}
            submission.versions.remove(version)
            self.db.flush()
            still_used = {
                name for (name,) in self.db.query(SubmissionFile.stored_filename).filter(
                    SubmissionFile.stored_filename.in_(filenames)
                )
            } if filenames else set()
        released = sorted(filenames - still_used)

        for stored_filename in released:
            self.storage.delete(stored_filename)
        logger.info(f"Deleted v{version_number} of submission {submission.id}; released {len(released)} files")
        return released

    def _check_editable(self, assignment: Assignment, submission: Optional[Submission]) -> None:
        if submission is None or submission.status == SubmissionStatus.draft:
            return
        if not assignment.allow_resubmission:
            raise StateConflictError(
                "Assignment has already been submitted and cannot be edited",
                current_state=submission.status.value,
            )
        if assignment.max_attempts is not None and submission.attempt_count >= assignment.max_attempts:
            raise StateConflictError(
                f"Maximum number of attempts ({assignment.max_attempts}) reached",
                current_state=submission.status.value,
            )

    def _check_submittable(self, submission: Submission, assignment: Assignment, now) -> None:
        if submission.status != SubmissionStatus.draft:
            raise StateConflictError(
                f"Submission {submission.id} is already {submission.status.value}",
                current_state=submission.status.value,
            )
        due_date = as_utc(assignment.due_date)
        if due_date is not None and as_utc(now) > due_date and not assignment.allow_late_submissions:
            raise StateConflictError(
                "The due date has passed and late submissions are not accepted",
                current_state=submission.status.value,
            )
        if assignment.max_attempts is not None and submission.attempt_count >= assignment.max_attempts:
            raise StateConflictError(
                f"Maximum number of attempts ({assignment.max_attempts}) reached",
                current_state=submission.status.value,
            )

    def _write_draft(self, assignment, student_id, content, auto_saved, stored) -> Submission:
        now = self.clock()
        with unit_of_work(self.db):
            submission = find_submission(self.db, assignment.id, student_id)
            if submission is None:
                submission = Submission(
                    assignment_id=assignment.id,
                    student_id=student_id,
                    status=SubmissionStatus.draft,
                    created_at=now,
                )
                self.db.add(submission)
                self.db.flush()
            else:
                submission = self._lock(submission.id)
                self._check_editable(assignment, submission)
                if submission.status != SubmissionStatus.draft:
                    self._reopen(submission)

            self._append_version(
                submission,
                text=content.text,
                quiz_answers=content.stored_answers(),
                files=self._file_rows(stored, now),
                is_draft=True,
                auto_saved=auto_saved,
                now=now,
            )
            submission.updated_at = now
        return submission

    def _write_final(self, submission_id, content, stored, now) -> Submission:
        with unit_of_work(self.db):
            submission = self._lock(submission_id)
            self._check_submittable(submission, submission.assignment, now)
            if content is None:
                latest = submission.latest_version
                text, answers = latest.content, latest.quiz_answers
                files = [
                    SubmissionFile(
                        original_filename=f.original_filename,
                        stored_filename=f.stored_filename,
                        size=f.size,
                        mime_type=f.mime_type,
                        hash=f.hash,
                        upload_order=f.upload_order,
                        uploaded_at=f.uploaded_at,
                    )
                    for f in latest.files
                ]
            else:
                text, answers = content.text, content.stored_answers()
                files = self._file_rows(stored, now)

            self._append_version(
                submission, text=text, quiz_answers=answers, files=files,
                is_draft=False, auto_saved=False, now=now, submitted_at=now,
            )
            submission.status = SubmissionStatus.submitted
            submission.updated_at = now
        return submission

    def _reopen(self, submission: Submission) -> None:
        logger.info(f"Reopening {submission.status.value} submission {submission.id} for resubmission")
        record = submission.late_record
        if record is not None and record.waived:
            logger.warning(
                f"Discarding waived late penalty of submission {submission.id} "
                f"(waived by {record.waived_by} at {record.waived_at.isoformat()}: {record.waived_reason})"
            )
        submission.status = SubmissionStatus.draft
        submission.grade = None
        submission.graded_by = None
        submission.late_record = None

    def _lock(self, submission_id: int) -> Submission:
        """Re-read a submission holding its row lock until the transaction ends."""
        return self.db.query(Submission).filter(Submission.id == submission_id).with_for_update().one()

    def _next_version_number(self, submission_id: int) -> int:
        current = self.db.query(func.max(SubmissionVersion.version_number)).filter(
            SubmissionVersion.submission_id == submission_id
        ).scalar()
        return (current or 0) + 1

    def _append_version(self, submission, text, quiz_answers, files, is_draft, auto_saved, now, submitted_at=None):
        version = SubmissionVersion(
            version_number=self._next_version_number(submission.id),
            content=text,
            quiz_answers=quiz_answers,
            is_draft=is_draft,
            auto_saved=auto_saved,
            submitted_at=submitted_at,
            created_at=now,
            files=files,
        )
        submission.versions.append(version)
        self.db.flush()
        return version

    def _with_version_retry(self, write: Callable[[], Any]):
        """Run a write, retrying when a concurrent writer took the same version number."""
        for attempt in range(1, VERSION_ALLOCATION_ATTEMPTS + 1):
            try:
                return write()
            except IntegrityError as e:
                logger.warning(f"Version allocation conflict (attempt {attempt}): {e.orig}")
                if attempt == VERSION_ALLOCATION_ATTEMPTS:
                    raise StateConflictError("Submission was modified concurrently; please retry") from e

    def _store_files(self, content: SubmissionContent) -> List[StoredFile]:
        stored: List[StoredFile] = []
        try:
            for upload in content.files:
                stored.append(self.storage.store(upload.filename, upload.data))
        except BaseException:
            self._discard(stored)
            raise
        return stored

    def _discard(self, stored: List[StoredFile]) -> None:
        for item in stored:
            try:
                self.storage.delete(item.stored_filename)
            except Exception as e:
                logger.error(f"Failed to remove orphaned upload {item.stored_filename}: {e}")

    @staticmethod
    def _file_rows(stored: List[StoredFile], now) -> List[SubmissionFile]:
        return [
            SubmissionFile(
                original_filename=item.original_filename,
                stored_filename=item.stored_filename,
                size=item.size,
                mime_type=item.mime_type,
                hash=item.hash,
                upload_order=order,
                uploaded_at=now,
            )
            for order, item in enumerate(stored, start=1)
        ]
