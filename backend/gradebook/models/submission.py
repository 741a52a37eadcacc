"""Submission, version history, file metadata and late-penalty models."""

from datetime import datetime, UTC

from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Integer, JSON, Float, Boolean,
    Enum as SQLEnum, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .enums import SubmissionStatus


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Submission(Base):
    """The mutable head of a learner's work on one assignment."""
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    status = Column(SQLEnum(SubmissionStatus, name="submission_status"), nullable=False, default=SubmissionStatus.draft)
    grade = Column(Float)
    feedback = Column(Text)
    graded_by = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationships
    assignment = relationship("Assignment", back_populates="submissions")
    versions = relationship(
        "SubmissionVersion",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionVersion.version_number",
    )
    late_record = relationship(
        "LateSubmissionRecord",
        back_populates="submission",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Submission(id={self.id}, student_id={self.student_id}, status={self.status.value})>"

    @property
    def latest_version(self):
        """The highest-numbered version, authoritative for current content."""
        return self.versions[-1] if self.versions else None

    @property
    def final_version(self):
        """The most recent finalized version, if any."""
        for version in reversed(self.versions):
            if not version.is_draft:
                return version
        return None

    @property
    def attempt_count(self) -> int:
        return sum(1 for version in self.versions if not version.is_draft)

    @property
    def content(self):
        latest = self.latest_version
        return latest.content if latest else None

    @property
    def quiz_answers(self):
        latest = self.latest_version
        return latest.quiz_answers if latest else None


class SubmissionVersion(Base):
    """One immutable snapshot in a submission's edit history."""
    __tablename__ = "submission_versions"
    __table_args__ = (
        UniqueConstraint("submission_id", "version_number", name="uq_submission_version_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    content = Column(Text)
    quiz_answers = Column(JSON)
    is_draft = Column(Boolean, nullable=False, default=True)
    auto_saved = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    submission = relationship("Submission", back_populates="versions")
    files = relationship(
        "SubmissionFile",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="SubmissionFile.upload_order",
    )

    def __repr__(self):
        return (
            f"<SubmissionVersion(submission_id={self.submission_id}, "
            f"version_number={self.version_number}, is_draft={self.is_draft})>"
        )


class SubmissionFile(Base):
    """Metadata of a file attached to a version; the bytes live in file storage."""
    __tablename__ = "submission_files"

    id = Column(Integer, primary_key=True, index=True)
    version_id = Column(Integer, ForeignKey("submission_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    original_filename = Column(String(255), nullable=False)
    stored_filename = Column(String(255), nullable=False, index=True)
    size = Column(Integer, nullable=False)
    mime_type = Column(String(100))
    hash = Column(String(64), index=True)
    upload_order = Column(Integer, nullable=False, default=1)
    uploaded_at = Column(DateTime(timezone=True), default=_utcnow)

    version = relationship("SubmissionVersion", back_populates="files")

    def __repr__(self):
        return f"<SubmissionFile(id={self.id}, original_filename='{self.original_filename}')>"


class LateSubmissionRecord(Base):
    """Audit record of the late penalty computed for a submission."""
    __tablename__ = "late_submissions"

    id = Column(Integer, primary_key=True, index=True)
    submission_id = Column(
        Integer, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    days_late = Column(Integer, nullable=False)
    penalty_percentage = Column(Float, nullable=False)
    original_grade = Column(Float)
    final_grade = Column(Float)
    penalty_applied_at = Column(DateTime(timezone=True), default=_utcnow)
    waived_by = Column(Integer)
    waived_reason = Column(Text)
    waived_at = Column(DateTime(timezone=True))

    submission = relationship("Submission", back_populates="late_record")

    def __repr__(self):
        return (
            f"<LateSubmissionRecord(submission_id={self.submission_id}, "
            f"days_late={self.days_late}, penalty_percentage={self.penalty_percentage})>"
        )

    @property
    def waived(self) -> bool:
        return self.waived_at is not None
