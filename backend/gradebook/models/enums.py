"""Shared enums for models and grading."""
import enum


class AssignmentType(enum.Enum):
    essay = "essay"
    quiz = "quiz"
    file_upload = "file_upload"
    mixed = "mixed"
    coding = "coding"


class SubmissionStatus(enum.Enum):
    draft = "draft"
    submitted = "submitted"
    graded = "graded"


class QuestionType(enum.Enum):
    multiple_choice = "multiple_choice"
    true_false = "true_false"
    short_answer = "short_answer"
    essay = "essay"

    @property
    def is_objective(self) -> bool:
        return self is not QuestionType.essay
