"""HTTP routes for submissions, grading and analytics."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import Caller, get_current_caller, require_grader
from ..database import get_db
from ..models import SubmissionStatus
from .analytics import AnalyticsSnapshot, CourseAnalytics, CourseGrade
from .engine import GradingEngine
from .exceptions import (
    BulkGradeError, DependencyFailureError, GradingError, NotFoundError, StateConflictError, ValidationError,
)
from .objective_grader import AutoGradeRun, ObjectiveGradeResult
from .questions import QuizSummary
from .schemas import (
    BulkGradeItem, DraftRequest, FileUpload, GradeRequest, LatePenaltyResponse, RubricGradeRequest,
    SubmissionContent, SubmissionDetailResponse, SubmissionResponse, WaiveRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/grading", tags=["Grading"])

ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (DependencyFailureError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(error: GradingError) -> int:
    if isinstance(error, BulkGradeError):
        return status_for(error.cause)
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def grading_exception_handler(request: Request, exc: GradingError) -> JSONResponse:
    """Render engine errors with a status code per error kind."""
    body = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    if isinstance(exc, BulkGradeError):
        body["failed_submission_id"] = exc.failed_submission_id
        body["committed_ids"] = exc.committed_ids
    return JSONResponse(status_code=status_for(exc), content=body)


def get_grading_engine(db: Session = Depends(get_db)) -> GradingEngine:
    """Dependency to get an instance of GradingEngine."""
    return GradingEngine(db)


def _ensure_can_view(caller: Caller, student_id: int) -> None:
    if not caller.can_grade and caller.user_id != student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this submission")


@router.post("/assignments/{assignment_id}/drafts", response_model=SubmissionResponse)
async def save_draft(
    assignment_id: int,
    draft: DraftRequest,
    caller: Caller = Depends(get_current_caller),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Save the caller's work on an assignment as a new draft version."""
    content = SubmissionContent(text=draft.text, quiz_answers=draft.quiz_answers)
    return engine.save_draft(assignment_id, caller.user_id, content, auto_saved=draft.auto_saved)


@router.post("/assignments/{assignment_id}/drafts/files", response_model=SubmissionResponse)
async def save_draft_with_files(
    assignment_id: int,
    files: List[UploadFile] = File(...),
    text: Optional[str] = Form(None),
    caller: Caller = Depends(get_current_caller),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Save a draft version with file uploads attached."""
    uploads = [FileUpload(filename=f.filename or "unnamed_file", data=await f.read()) for f in files]
    content = SubmissionContent(text=text, files=uploads)
    return engine.save_draft(assignment_id, caller.user_id, content)


@router.post("/submissions/{submission_id}/submit", response_model=SubmissionResponse)
async def submit_final(
    submission_id: int,
    caller: Caller = Depends(get_current_caller),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Finalize the latest draft of a submission."""
    submission = engine.get_submission(submission_id)
    _ensure_can_view(caller, submission.student_id)
    return engine.submit_final(submission_id)


@router.get("/submissions/{submission_id}", response_model=SubmissionDetailResponse)
async def get_submission(
    submission_id: int,
    caller: Caller = Depends(get_current_caller),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Get a submission with its version history."""
    submission = engine.get_submission(submission_id)
    _ensure_can_view(caller, submission.student_id)
    return submission


@router.get("/assignments/{assignment_id}/submissions", response_model=List[SubmissionResponse])
async def list_submissions(
    assignment_id: int,
    status_filter: Optional[SubmissionStatus] = None,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    return engine.list_submissions(assignment_id, status_filter)


@router.delete("/versions/{version_id}")
async def delete_version(
    version_id: int,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Delete a superseded draft version."""
    return {"released_files": engine.delete_version(version_id)}


@router.put("/assignments/{assignment_id}/questions", response_model=QuizSummary)
async def define_quiz_questions(
    assignment_id: int,
    questions: List[dict],
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Replace an assignment's quiz questions and answer key."""
    return engine.define_quiz_questions(assignment_id, questions)


@router.post("/submissions/{submission_id}/auto-grade", response_model=Optional[ObjectiveGradeResult])
async def auto_grade(
    submission_id: int,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    return engine.auto_grade(submission_id)


@router.post("/assignments/{assignment_id}/auto-grade", response_model=AutoGradeRun)
async def auto_grade_assignment(
    assignment_id: int,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Auto-grade every submitted, ungraded submission of a quiz assignment."""
    return engine.auto_grade_assignment(assignment_id)


@router.post("/submissions/{submission_id}/late-penalty", response_model=Optional[LatePenaltyResponse])
async def apply_late_penalty(
    submission_id: int,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    return engine.apply_late_penalty(submission_id)


@router.post("/submissions/{submission_id}/late-penalty/waive", response_model=LatePenaltyResponse)
async def waive_late_penalty(
    submission_id: int,
    request: WaiveRequest,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Waive a late penalty and restore the original grade."""
    return engine.waive_late_penalty(submission_id, caller.user_id, request.reason)


@router.post("/submissions/{submission_id}/grade", response_model=SubmissionResponse)
async def grade_submission(
    submission_id: int,
    request: GradeRequest,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    return engine.grade_submission(submission_id, request.grade, request.feedback, caller.user_id)


@router.post("/submissions/{submission_id}/rubric-grade")
async def grade_with_rubric(
    submission_id: int,
    request: RubricGradeRequest,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Grade a submission with a rubric of its assignment."""
    submission, result = engine.grade_with_rubric(
        submission_id, request.rubric_id, request.scores, caller.user_id, request.feedback
    )
    return {
        "submission": SubmissionResponse.model_validate(submission),
        "rubric_result": result,
    }


@router.post("/bulk-grade", response_model=List[SubmissionResponse])
async def bulk_grade(
    items: List[BulkGradeItem],
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    """Grade several submissions; each item commits on its own."""
    for item in items:
        if item.graded_by is None:
            item.graded_by = caller.user_id
    return engine.bulk_grade(items)


@router.get("/assignments/{assignment_id}/analytics", response_model=AnalyticsSnapshot)
async def assignment_analytics(
    assignment_id: int,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    return engine.get_assignment_analytics(assignment_id)


@router.get("/courses/{course_id}/analytics", response_model=CourseAnalytics)
async def course_analytics(
    course_id: int,
    caller: Caller = Depends(require_grader),
    engine: GradingEngine = Depends(get_grading_engine),
):
    return engine.get_course_analytics(course_id)


@router.get("/courses/{course_id}/students/{student_id}/grade", response_model=CourseGrade)
async def course_grade(
    course_id: int,
    student_id: int,
    caller: Caller = Depends(get_current_caller),
    engine: GradingEngine = Depends(get_grading_engine),
):
    _ensure_can_view(caller, student_id)
    return engine.calculate_course_grade(student_id, course_id)
