"""Assignment and AutomatedGradingRule models."""

from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Integer, JSON, Float, Boolean,
    Enum as SQLEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base
from .enums import AssignmentType, QuestionType


class Assignment(Base):
    """Assignment definition, owned by the course service and read here when grading."""
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, index=True)
    title = Column(String(255), nullable=False)
    type = Column(SQLEnum(AssignmentType, name="assignment_type"), nullable=False)
    due_date = Column(DateTime(timezone=True))
    max_score = Column(Float, nullable=False, default=100)
    allow_late_submissions = Column(Boolean, nullable=False, default=True)
    late_submission_penalty = Column(Float, nullable=False, default=0)  # percent per day
    max_late_days = Column(Integer, nullable=False, default=7)
    quiz_questions = Column(JSON, default=list)
    auto_grading_enabled = Column(Boolean, nullable=False, default=False)
    allow_resubmission = Column(Boolean, nullable=False, default=False)
    max_attempts = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    rubrics = relationship("Rubric", back_populates="assignment", cascade="all, delete-orphan")
    submissions = relationship("Submission", back_populates="assignment")
    grading_rules = relationship(
        "AutomatedGradingRule",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="AutomatedGradingRule.question_index",
    )

    def __repr__(self):
        return f"<Assignment(id={self.id}, title='{self.title}')>"

    @property
    def has_manual_questions(self) -> bool:
        """Whether any quiz question needs a human grader."""
        return any(not QuestionType(q["type"]).is_objective for q in self.quiz_questions or [])


class AutomatedGradingRule(Base):
    """Answer key for one objectively gradable question of an assignment."""
    __tablename__ = "automated_grading"
    __table_args__ = (
        UniqueConstraint("assignment_id", "question_index", name="uq_grading_rule_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    question_index = Column(Integer, nullable=False)
    question_type = Column(SQLEnum(QuestionType, name="question_type"), nullable=False)
    correct_answer = Column(Text, nullable=False)
    variations = Column(JSON, default=list)
    points = Column(Float, nullable=False)
    case_sensitive = Column(Boolean, nullable=False, default=False)
    partial_credit_rules = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignment = relationship("Assignment", back_populates="grading_rules")

    def __repr__(self):
        return (
            f"<AutomatedGradingRule(assignment_id={self.assignment_id}, "
            f"question_index={self.question_index}, type={self.question_type.value})>"
        )
