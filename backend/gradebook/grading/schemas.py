"""Pydantic models for submission input and API responses."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.enums import SubmissionStatus


class FileUpload(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255)
    data: bytes


class SubmissionContent(BaseModel):
    """Content of one save: essay text, quiz answers and new file uploads."""
    text: Optional[str] = None
    quiz_answers: Optional[Dict[int, Any]] = None
    files: List[FileUpload] = Field(default_factory=list)

    @field_validator("quiz_answers")
    @classmethod
    def non_negative_indexes(cls, v: Optional[Dict[int, Any]]) -> Optional[Dict[int, Any]]:
        if v is not None and any(index < 0 for index in v):
            raise ValueError("Question indexes must not be negative")
        return v

    def stored_answers(self) -> Optional[Dict[str, Any]]:
        """Answers keyed by string index, as they are persisted in JSON."""
        if self.quiz_answers is None:
            return None
        return {str(index): self.quiz_answers[index] for index in sorted(self.quiz_answers)}


class SubmissionFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_filename: str
    stored_filename: str
    size: int
    mime_type: Optional[str] = None
    hash: Optional[str] = None
    upload_order: int


class SubmissionVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    version_number: int
    content: Optional[str] = None
    quiz_answers: Optional[Dict[str, Any]] = None
    is_draft: bool
    auto_saved: bool
    submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    files: List[SubmissionFileResponse] = Field(default_factory=list)


class LatePenaltyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_id: int
    days_late: int
    penalty_percentage: float
    original_grade: Optional[float] = None
    final_grade: Optional[float] = None
    penalty_applied_at: Optional[datetime] = None
    waived_by: Optional[int] = None
    waived_reason: Optional[str] = None
    waived_at: Optional[datetime] = None


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: int
    student_id: int
    status: SubmissionStatus
    grade: Optional[float] = None
    feedback: Optional[str] = None
    graded_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    late_record: Optional[LatePenaltyResponse] = None


class SubmissionDetailResponse(SubmissionResponse):
    versions: List[SubmissionVersionResponse] = Field(default_factory=list)


class GradeRequest(BaseModel):
    grade: float
    feedback: Optional[str] = None


class BulkGradeItem(BaseModel):
    submission_id: int
    grade: float
    feedback: Optional[str] = None
    graded_by: Optional[int] = None


class RubricGradeRequest(BaseModel):
    rubric_id: int
    scores: Dict[str, float]
    feedback: Optional[str] = None


class WaiveRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class DraftRequest(BaseModel):
    text: Optional[str] = None
    quiz_answers: Optional[Dict[int, Any]] = None
    auto_saved: bool = False
