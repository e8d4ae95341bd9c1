"""Session and password models for the API login."""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field

MIN_PASSWORD_LENGTH = 8


class LoginRequest(BaseModel):
    """Password submitted to /api/auth/login."""

    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Issued session token."""

    token: str
    token_type: str = "bearer"
    expires_at: datetime


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class Session(BaseModel):
    """Server-side session, keyed by its token."""

    token: str
    created_at: datetime
    expires_at: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    anonymous: bool = False  # auth disabled, no token issued

    @classmethod
    def open(cls, token: str, hours: int, **kwargs) -> "Session":
        now = datetime.now()
        return cls(token=token, created_at=now, expires_at=now + timedelta(hours=hours), **kwargs)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now()) > self.expires_at


class SessionInfo(BaseModel):
    """What /api/auth/session reports about the caller's session."""

    created_at: datetime
    expires_at: datetime
    expires_in_seconds: int
    anonymous: bool = False
    is_valid: bool

    @classmethod
    def from_session(cls, session: Session) -> "SessionInfo":
        remaining = (session.expires_at - datetime.now()).total_seconds()
        return cls(
            created_at=session.created_at,
            expires_at=session.expires_at,
            expires_in_seconds=max(0, int(remaining)),
            anonymous=session.anonymous,
            is_valid=not session.is_expired(),
        )
