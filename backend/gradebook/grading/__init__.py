"""Submission and grading engine."""
from .engine import GradingEngine
from .exceptions import (
    GradingError,
    NotFoundError,
    ValidationError,
    StateConflictError,
    DependencyFailureError,
    BulkGradeError,
)
from .router import router as grading_router, grading_exception_handler

__all__ = [
    'GradingEngine',
    'GradingError',
    'NotFoundError',
    'ValidationError',
    'StateConflictError',
    'DependencyFailureError',
    'BulkGradeError',
    'grading_router',
    'grading_exception_handler',
]
