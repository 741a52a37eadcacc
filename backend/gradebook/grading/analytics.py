"""
Grade analytics.

Snapshots are derived on demand from Submission, LateSubmissionRecord and
AutomatedGradingRule rows and never stored. Rows are read in a fixed order
and every figure is rounded the same way, so recomputing a snapshot from the
same rows gives identical output.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session, selectinload

from ..models import Assignment, QuestionType, Submission, SubmissionVersion
from .clock import as_utc
from .objective_grader import QUIZ_ASSIGNMENT_TYPES, answer_for, grade_question, is_answered
from .primitives import (
    PASSING_PERCENTAGE,
    calculate_letter_grade,
    calculate_percentage,
    grade_distribution,
    mean,
    median,
    population_stddev,
    round_score,
)
from .queries import get_assignment

logger = logging.getLogger(__name__)


class GradeStatistics(BaseModel):
    total_submissions: int
    graded_submissions: int
    average_grade: Optional[float] = None
    highest_grade: Optional[float] = None
    lowest_grade: Optional[float] = None
    median_grade: Optional[float] = None


class PerformanceMetrics(BaseModel):
    completion_rate: float
    average_score: float
    average_percentage: float
    standard_deviation: float
    passing_rate: float


class TimelineEntry(BaseModel):
    day: date
    graded_count: int


class LateStatistics(BaseModel):
    late_submissions: int
    waived_penalties: int
    average_penalty_percentage: float


class QuestionAnalytics(BaseModel):
    question_index: int
    question: Optional[str] = None
    question_type: QuestionType
    points: float
    correct_count: int
    total_answered: int
    success_rate: float
    difficulty: str


class AnalyticsSnapshot(BaseModel):
    assignment_id: int
    max_score: float
    statistics: GradeStatistics
    grade_distribution: Dict[str, int]
    performance: PerformanceMetrics
    timeline: List[TimelineEntry]
    late_statistics: LateStatistics
    question_analytics: List[QuestionAnalytics]


class AssignmentSummary(BaseModel):
    assignment_id: int
    title: str
    total_submissions: int
    graded_submissions: int
    average_percentage: float


class CourseAnalytics(BaseModel):
    course_id: int
    assignment_count: int
    total_submissions: int
    graded_submissions: int
    average_percentage: float
    grade_distribution: Dict[str, int]
    assignments: List[AssignmentSummary]


class CourseGrade(BaseModel):
    student_id: int
    course_id: int
    earned_points: float
    possible_points: float
    percentage: float
    letter_grade: str
    graded_assignments: int
    total_assignments: int


def difficulty_label(success_rate: float, total_answered: int) -> str:
    if total_answered == 0:
        return "Unknown"
    if success_rate >= 80:
        return "Easy"
    if success_rate >= 60:
        return "Medium"
    if success_rate >= 40:
        return "Hard"
    return "Very Hard"


def _rate(part: int, whole: int) -> float:
    return round_score(calculate_percentage(part, whole))


def _optional(value: Optional[float]) -> Optional[float]:
    return round_score(value) if value is not None else None


def performance_metrics(total: int, scores: List[float], max_score: float) -> PerformanceMetrics:
    percentages = [calculate_percentage(score, max_score) for score in scores]
    passing = sum(1 for percentage in percentages if percentage >= PASSING_PERCENTAGE)
    return PerformanceMetrics(
        completion_rate=_rate(len(scores), total),
        average_score=round_score(mean(scores)),
        average_percentage=round_score(mean(percentages)),
        standard_deviation=round_score(population_stddev(scores)),
        passing_rate=_rate(passing, len(scores)),
    )


class AnalyticsAggregator:
    """Read-only grade statistics for an assignment or a course."""

    def __init__(self, db: Session):
        self.db = db

    def _submissions(self, assignment_ids: List[int]) -> List[Submission]:
        if not assignment_ids:
            return []
        return self.db.query(Submission).options(
            selectinload(Submission.versions).selectinload(SubmissionVersion.files),
            selectinload(Submission.late_record),
        ).filter(Submission.assignment_id.in_(assignment_ids)).order_by(Submission.id).all()

    def get_assignment_analytics(self, assignment_id: int) -> AnalyticsSnapshot:
        assignment = get_assignment(self.db, assignment_id)
        submissions = self._submissions([assignment.id])
        graded = [s for s in submissions if s.grade is not None]
        scores = [s.grade for s in graded]
        max_score = assignment.max_score

        statistics = GradeStatistics(
            total_submissions=len(submissions),
            graded_submissions=len(graded),
            average_grade=round_score(mean(scores)) if scores else None,
            highest_grade=_optional(max(scores, default=None)),
            lowest_grade=_optional(min(scores, default=None)),
            median_grade=_optional(median(scores)),
        )

        snapshot = AnalyticsSnapshot(
            assignment_id=assignment.id,
            max_score=max_score,
            statistics=statistics,
            grade_distribution=grade_distribution(calculate_percentage(score, max_score) for score in scores),
            performance=performance_metrics(len(submissions), scores, max_score),
            timeline=self._timeline(graded),
            late_statistics=self._late_statistics(submissions),
            question_analytics=self._question_analytics(assignment, graded),
        )
        logger.debug(f"Computed analytics for assignment {assignment.id} over {len(submissions)} submissions")
        return snapshot

    def get_course_analytics(self, course_id: int) -> CourseAnalytics:
        assignments = self.db.query(Assignment).filter(
            Assignment.course_id == course_id
        ).order_by(Assignment.id).all()
        by_assignment: Dict[int, List[Submission]] = {a.id: [] for a in assignments}
        for submission in self._submissions(list(by_assignment)):
            by_assignment[submission.assignment_id].append(submission)

        summaries = []
        all_percentages: List[float] = []
        total = 0
        for assignment in assignments:
            submissions = by_assignment[assignment.id]
            percentages = [
                calculate_percentage(s.grade, assignment.max_score) for s in submissions if s.grade is not None
            ]
            all_percentages.extend(percentages)
            total += len(submissions)
            summaries.append(AssignmentSummary(
                assignment_id=assignment.id,
                title=assignment.title,
                total_submissions=len(submissions),
                graded_submissions=len(percentages),
                average_percentage=round_score(mean(percentages)),
            ))

        return CourseAnalytics(
            course_id=course_id,
            assignment_count=len(assignments),
            total_submissions=total,
            graded_submissions=len(all_percentages),
            average_percentage=round_score(mean(all_percentages)),
            grade_distribution=grade_distribution(all_percentages),
            assignments=summaries,
        )

    def calculate_course_grade(self, student_id: int, course_id: int) -> CourseGrade:
        """Course grade as graded points earned over the points those assignments were worth."""
        assignments = self.db.query(Assignment).filter(Assignment.course_id == course_id).all()
        graded = self.db.query(Submission).join(Assignment).filter(
            Assignment.course_id == course_id,
            Submission.student_id == student_id,
            Submission.grade.isnot(None),
        ).order_by(Submission.id).all()

        earned = round_score(sum(s.grade for s in graded))
        possible = round_score(sum(s.assignment.max_score for s in graded))
        percentage = calculate_percentage(earned, possible)
        return CourseGrade(
            student_id=student_id,
            course_id=course_id,
            earned_points=earned,
            possible_points=possible,
            percentage=round_score(percentage),
            letter_grade=calculate_letter_grade(percentage) if graded else "N/A",
            graded_assignments=len(graded),
            total_assignments=len(assignments),
        )

    @staticmethod
    def _timeline(graded: List[Submission]) -> List[TimelineEntry]:
        counts: Dict[date, int] = {}
        for submission in graded:
            day = as_utc(submission.updated_at).date()
            counts[day] = counts.get(day, 0) + 1
        return [TimelineEntry(day=day, graded_count=counts[day]) for day in sorted(counts)]

    @staticmethod
    def _late_statistics(submissions: List[Submission]) -> LateStatistics:
        records = [s.late_record for s in submissions if s.late_record is not None]
        return LateStatistics(
            late_submissions=len(records),
            waived_penalties=sum(1 for record in records if record.waived),
            average_penalty_percentage=round_score(mean([record.penalty_percentage for record in records])),
        )

    @staticmethod
    def _question_analytics(assignment: Assignment, graded: List[Submission]) -> List[QuestionAnalytics]:
        if assignment.type not in QUIZ_ASSIGNMENT_TYPES:
            return []

        questions = assignment.quiz_questions or []
        analytics = []
        for rule in assignment.grading_rules:
            correct = answered = 0
            for submission in graded:
                version = submission.final_version
                answer = answer_for(version.quiz_answers if version else None, rule.question_index)
                if not is_answered(answer):
                    continue
                answered += 1
                if grade_question(rule, answer).is_correct:
                    correct += 1

            success_rate = _rate(correct, answered)
            question = questions[rule.question_index] if rule.question_index < len(questions) else {}
            analytics.append(QuestionAnalytics(
                question_index=rule.question_index,
                question=question.get("question"),
                question_type=rule.question_type,
                points=rule.points,
                correct_count=correct,
                total_answered=answered,
                success_rate=success_rate,
                difficulty=difficulty_label(success_rate, answered),
            ))
        return analytics
