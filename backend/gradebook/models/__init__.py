"""SQLAlchemy models for the submission and grading engine."""

from .enums import AssignmentType, SubmissionStatus, QuestionType
from .assignment import Assignment, AutomatedGradingRule
from .rubric import Rubric
from .submission import Submission, SubmissionVersion, SubmissionFile, LateSubmissionRecord

__all__ = [
    "AssignmentType",
    "SubmissionStatus",
    "QuestionType",
    "Assignment",
    "AutomatedGradingRule",
    "Rubric",
    "Submission",
    "SubmissionVersion",
    "SubmissionFile",
    "LateSubmissionRecord",
]
