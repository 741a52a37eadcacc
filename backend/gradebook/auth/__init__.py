"""Caller identity for the grading API."""
from .models import Caller, CallerRole
from .service import create_access_token, decode_access_token, get_current_caller, require_grader

__all__ = [
    'Caller',
    'CallerRole',
    'create_access_token',
    'decode_access_token',
    'get_current_caller',
    'require_grader',
]
