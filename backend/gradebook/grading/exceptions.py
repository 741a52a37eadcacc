"""
Error taxonomy for the grading engine.

Callers get enough detail to correct their input, but never raw internal
state such as SQL or stack traces.
"""

from typing import Iterable, List, Optional


class GradingError(Exception):
    """Base exception for grading engine errors."""
    pass


class NotFoundError(GradingError):
    """Raised when a referenced submission, assignment, rubric or version does not exist."""
    def __init__(self, entity: str, identifier, message: str = ""):
        self.entity = entity
        self.identifier = identifier
        self.message = message or f"{entity} {identifier} not found"
        super().__init__(self.message)


class ValidationError(GradingError):
    """Raised when input is malformed or violates a grading bound."""
    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        self.message = message
        super().__init__(self.message)


class StateConflictError(GradingError):
    """Raised when an operation is not allowed in the submission's current state."""
    def __init__(self, message: str, current_state: Optional[str] = None):
        self.current_state = current_state
        self.message = message
        super().__init__(self.message)


class DependencyFailureError(GradingError):
    """Raised when an external collaborator (file storage, notifications) fails."""
    def __init__(self, collaborator: str, message: str = ""):
        self.collaborator = collaborator
        self.message = message or f"{collaborator} is unavailable"
        super().__init__(self.message)


class BulkGradeError(GradingError):
    """Raised when a bulk grading run stops at a failing item.

    Items before the failing one stay committed; their submission ids are in
    ``committed_ids``.
    """
    def __init__(self, failed_submission_id, cause: GradingError, committed_ids: Iterable[int] = ()):
        self.failed_submission_id = failed_submission_id
        self.cause = cause
        self.committed_ids: List[int] = list(committed_ids)
        self.message = f"Bulk grading stopped at submission {failed_submission_id}: {cause}"
        super().__init__(self.message)


def from_pydantic(error, prefix: str = "") -> ValidationError:
    """Convert a pydantic ValidationError into the engine's ValidationError."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    field = f"{prefix}{location}" if location else prefix or None
    return ValidationError(f"{field}: {first.get('msg')}" if field else first.get("msg"), field=field)
