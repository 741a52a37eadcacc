"""
Automated objective grading.

Quiz questions are turned into AutomatedGradingRule rows when they are
defined. Grading compares a submission's answers with those rules. It is a
pure function of (rules, answers), so the same inputs always produce the
same score.
"""

import re
import logging
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import unit_of_work
from ..models import AutomatedGradingRule, AssignmentType, QuestionType, Submission, SubmissionStatus
from .clock import Clock, utcnow
from .exceptions import GradingError, StateConflictError, ValidationError
from .late_penalty import LatePenaltyService
from .notifications import Notifier, SUBMISSION_GRADED, default_notifier, notify_quietly
from .primitives import calculate_percentage, round_score
from .questions import QuizSummary, compile_flags, parse_questions, rule_fields, summarize
from .queries import get_assignment, get_submission

logger = logging.getLogger(__name__)

QUIZ_ASSIGNMENT_TYPES = (AssignmentType.quiz, AssignmentType.mixed)


class QuestionResult(BaseModel):
    question_index: int
    question_type: QuestionType
    student_answer: Optional[Any] = None
    correct_answer: str
    answered: bool
    is_correct: bool
    points_earned: float
    max_points: float


class ObjectiveGradeResult(BaseModel):
    total_score: float
    max_score: float
    percentage: float
    results: List[QuestionResult]


class AutoGradeItem(BaseModel):
    submission_id: int
    success: bool
    grade: Optional[float] = None
    error: Optional[str] = None


class AutoGradeRun(BaseModel):
    """Outcome of auto-grading every ungraded submission of an assignment."""
    assignment_id: int
    total_processed: int
    successful: int
    failed: int
    results: List[AutoGradeItem]


def normalize(value: Any, case_sensitive: bool = False) -> str:
    text = str(value).strip()
    return text if case_sensitive else text.lower()


def answer_for(answers: Optional[Mapping], question_index: int) -> Any:
    """
    Find the answer to a question in a submission's answer map.

    Keys may be ints or their string form, and a value may be wrapped as
    ``{"answer": ...}``.
    """
    if not answers:
        return None
    value = answers.get(question_index)
    if value is None:
        value = answers.get(str(question_index))
    if isinstance(value, Mapping):
        value = value.get("answer")
    return value


def is_answered(answer: Any) -> bool:
    if answer is None:
        return False
    if isinstance(answer, bool):
        return True
    return str(answer).strip() != ""


def _is_match(rule: AutomatedGradingRule, answer: Any) -> bool:
    # True/false answers compare case-insensitively regardless of the rule flag
    case_sensitive = rule.case_sensitive and rule.question_type != QuestionType.true_false
    submitted = normalize(answer, case_sensitive)
    accepted = [rule.correct_answer] + list(rule.variations or [])
    return any(submitted == normalize(candidate, case_sensitive) for candidate in accepted)


def partial_credit_percentage(rules: Optional[Iterable[Mapping]], answer: Any) -> float:
    """Credit percentage of the first partial-credit rule that matches, else 0."""
    text = str(answer).strip()
    for rule in rules or []:
        kind = rule.get("type")
        if kind == "contains":
            matched = str(rule.get("value", "")).lower() in text.lower()
        elif kind == "length":
            matched = rule.get("min_length", 0) <= len(text) <= rule.get("max_length", len(text))
        elif kind == "regex":
            matched = re.search(rule["pattern"], text, compile_flags(rule.get("flags", "i"))) is not None
        else:
            logger.warning(f"Ignoring unknown partial credit rule type: {kind}")
            continue
        if matched:
            return float(rule.get("credit_percentage", 0))
    return 0.0


def grade_question(rule: AutomatedGradingRule, answer: Any) -> QuestionResult:
    answered = is_answered(answer)
    is_correct = answered and _is_match(rule, answer)
    if is_correct:
        points_earned = rule.points
    elif answered and rule.question_type == QuestionType.short_answer:
        points_earned = round_score(rule.points * partial_credit_percentage(rule.partial_credit_rules, answer) / 100)
    else:
        points_earned = 0.0

    return QuestionResult(
        question_index=rule.question_index,
        question_type=rule.question_type,
        student_answer=answer,
        correct_answer=rule.correct_answer,
        answered=answered,
        is_correct=is_correct,
        points_earned=points_earned,
        max_points=rule.points,
    )


def grade_answers(rules: Iterable[AutomatedGradingRule], answers: Optional[Mapping]) -> ObjectiveGradeResult:
    """Grade an answer map against an assignment's rules, in question order."""
    results = [
        grade_question(rule, answer_for(answers, rule.question_index))
        for rule in sorted(rules, key=lambda r: r.question_index)
    ]
    total_score = round_score(sum(result.points_earned for result in results))
    max_score = round_score(sum(result.max_points for result in results))
    return ObjectiveGradeResult(
        total_score=total_score,
        max_score=max_score,
        percentage=round_score(calculate_percentage(total_score, max_score)),
        results=results,
    )


class ObjectiveGrader:
    """Defines answer keys and auto-grades finalized submissions."""

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

    def define_quiz_questions(self, assignment_id: int, questions: Any) -> QuizSummary:
        """
        Validate quiz questions and replace the assignment's grading rules.

        Raises:
            NotFoundError: if the assignment does not exist.
            ValidationError: if a question is malformed, the assignment is not
                a quiz, or objective points exceed the assignment's max score.
        """
        assignment = get_assignment(self.db, assignment_id)
        if assignment.type not in QUIZ_ASSIGNMENT_TYPES:
            raise ValidationError(
                f"Quiz questions are not supported for {assignment.type.value} assignments", field="type"
            )

        parsed = parse_questions(questions)
        summary = summarize(parsed)
        if summary.objective_points > assignment.max_score:
            raise ValidationError(
                f"Objective question points ({summary.objective_points}) exceed the assignment's "
                f"max score ({assignment.max_score})",
                field="questions",
            )

        with unit_of_work(self.db):
            for existing in list(assignment.grading_rules):
                assignment.grading_rules.remove(existing)
            # Old rules must be gone before new ones reuse their question indexes
            self.db.flush()

            assignment.quiz_questions = [question.model_dump(mode="json") for question in parsed]
            for index, question in enumerate(parsed):
                fields = rule_fields(index, question)
                if fields is not None:
                    assignment.grading_rules.append(AutomatedGradingRule(**fields))

        logger.info(
            f"Defined {summary.question_count} questions for assignment {assignment.id} "
            f"({summary.objective_points} auto-graded points)"
        )
        return summary

    def auto_grade(self, submission_id: int) -> Optional[ObjectiveGradeResult]:
        """
        Grade a submission's finalized answers.

        The raw score is stored as the grade and the late penalty is then
        re-applied to it. Returns None when the assignment has no grading
        rules.

        Raises:
            NotFoundError: if the submission does not exist.
            StateConflictError: if the submission has not been submitted, or
                it has manual questions and a grader has already graded it.
        """
        submission = get_submission(self.db, submission_id)
        if submission.status == SubmissionStatus.draft:
            raise StateConflictError(
                "Cannot auto-grade a submission that has not been submitted",
                current_state=submission.status.value,
            )

        assignment = submission.assignment
        if submission.status == SubmissionStatus.graded and assignment.has_manual_questions:
            # The grade includes manually graded points the answer key cannot reproduce
            raise StateConflictError(
                f"Submission {submission_id} has been graded including manual questions; "
                "regrade it manually instead",
                current_state=submission.status.value,
            )
        rules = list(assignment.grading_rules)
        if not rules:
            logger.info(f"No grading rules for assignment {assignment.id}; skipping auto-grade")
            return None

        version = submission.final_version
        result = grade_answers(rules, version.quiz_answers if version else None)

        with unit_of_work(self.db):
            submission.grade = result.total_score
            if not assignment.has_manual_questions:
                submission.status = SubmissionStatus.graded
            submission.updated_at = self.clock()

        self.penalties.apply_late_penalty(submission.id, original_grade=result.total_score)
        logger.info(f"Auto-graded submission {submission.id}: {result.total_score}/{result.max_score}")

        if submission.status == SubmissionStatus.graded:
            notify_quietly(self.notifier, SUBMISSION_GRADED, {
                "submission_id": submission.id,
                "student_id": submission.student_id,
                "assignment_id": assignment.id,
                "grade": submission.grade,
                "auto_graded": True,
            })
        return result

    def auto_grade_assignment(self, assignment_id: int) -> AutoGradeRun:
        """
        Auto-grade every submitted, still ungraded submission of a quiz.

        Each submission is graded in its own transaction. A failing
        submission is recorded in the run and the rest are still graded.

        Raises:
            NotFoundError: if the assignment does not exist.
            ValidationError: if the assignment is not a quiz.
        """
        assignment = get_assignment(self.db, assignment_id)
        if assignment.type not in QUIZ_ASSIGNMENT_TYPES:
            raise ValidationError(
                f"Auto-grading is not supported for {assignment.type.value} assignments", field="type"
            )

        pending = [
            submission_id for (submission_id,) in self.db.query(Submission.id).filter(
                Submission.assignment_id == assignment.id,
                Submission.status == SubmissionStatus.submitted,
                Submission.grade.is_(None),
            ).order_by(Submission.id)
        ]

        results: List[AutoGradeItem] = []
        for submission_id in pending:
            try:
                result = self.auto_grade(submission_id)
            except GradingError as e:
                logger.error(f"Failed to auto-grade submission {submission_id}: {e}")
                results.append(AutoGradeItem(submission_id=submission_id, success=False, error=str(e)))
                continue
            grade = get_submission(self.db, submission_id).grade if result is not None else None
            results.append(AutoGradeItem(submission_id=submission_id, success=True, grade=grade))

        successful = sum(1 for item in results if item.success)
        logger.info(
            f"Auto-graded assignment {assignment.id}: {successful} of {len(results)} submissions succeeded"
        )
        return AutoGradeRun(
            assignment_id=assignment.id,
            total_processed=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )
