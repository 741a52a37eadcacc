"""Rubric model."""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Integer, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Rubric(Base):
    """Rubric model.

    ``criteria`` is an ordered list of dicts with ``name``, ``description``,
    ``maxPoints``, ``weight`` and optional ``id`` and ``levels``.
    """
    __tablename__ = "rubrics"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    criteria = Column(JSON, nullable=False, default=list)
    created_by = Column(Integer)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    assignment = relationship("Assignment", back_populates="rubrics")

    def __repr__(self):
        return f"<Rubric(id={self.id}, name='{self.name}')>"
