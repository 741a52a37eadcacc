"""Token decoding and request dependencies that resolve the calling user."""
from datetime import datetime, timedelta, UTC
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from .models import Caller, CallerRole, SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def create_access_token(user_id: int, role: CallerRole, expires_delta: Optional[timedelta] = None) -> str:
    """Create an access token in the format the auth service issues."""
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"user_id": user_id, "role": CallerRole(role).value, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Caller:
    """Verify and decode a JWT access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        if payload.get("type", "access") != "access":
            raise credentials_exception
        return Caller(user_id=payload.get("user_id"), role=payload.get("role"))
    except (JWTError, ValidationError):
        raise credentials_exception


def get_current_caller(token: str = Depends(oauth2_scheme)) -> Caller:
    """Dependency to get the calling user from the JWT token."""
    return decode_access_token(token)


def require_grader(caller: Caller = Depends(get_current_caller)) -> Caller:
    """Dependency that only lets teachers and admins through."""
    if not caller.can_grade:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Grading permission required")
    return caller
