"""Lookups that raise NotFoundError instead of returning None."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import Assignment, Rubric, Submission, SubmissionVersion
from .exceptions import NotFoundError


def get_assignment(db: Session, assignment_id: int) -> Assignment:
    assignment = db.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFoundError("Assignment", assignment_id)
    return assignment


def get_submission(db: Session, submission_id: int) -> Submission:
    submission = db.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError("Submission", submission_id)
    return submission


def get_rubric(db: Session, rubric_id: int) -> Rubric:
    rubric = db.get(Rubric, rubric_id)
    if rubric is None:
        raise NotFoundError("Rubric", rubric_id)
    return rubric


def get_version(db: Session, version_id: int) -> SubmissionVersion:
    version = db.get(SubmissionVersion, version_id)
    if version is None:
        raise NotFoundError("SubmissionVersion", version_id)
    return version


def find_submission(db: Session, assignment_id: int, student_id: int) -> Optional[Submission]:
    return db.query(Submission).filter(
        Submission.assignment_id == assignment_id,
        Submission.student_id == student_id,
    ).first()
