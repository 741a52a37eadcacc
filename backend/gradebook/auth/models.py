"""Caller identity carried by access tokens issued by the platform's auth service."""
import os
from enum import Enum

from pydantic import BaseModel

# Token settings shared with the issuing auth service
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-keep-it-secure")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))


class CallerRole(str, Enum):
    student = "student"
    teacher = "teacher"
    admin = "admin"


class Caller(BaseModel):
    user_id: int
    role: CallerRole

    @property
    def can_grade(self) -> bool:
        return self.role in (CallerRole.teacher, CallerRole.admin)
