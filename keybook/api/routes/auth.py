"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from keybook.api.dependencies import SESSION_COOKIE, get_auth_service, require_auth
from keybook.models.auth import ChangePasswordRequest, LoginRequest, LoginResponse, Session, SessionInfo
from keybook.services.auth_service import AuthService

logger = logging.getLogger("keybook")

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    response: Response,
    login_request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Exchange the password for a session token.

    API clients send the token as a Bearer token. The token is also set as
    the session cookie.
    """
    if not auth_service.is_enabled:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Authentication is disabled")

    client_host = request.client.host if request.client else None
    if not auth_service.verify_password(login_request.password):
        logger.warning(f"Failed login from {client_host or 'unknown address'}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")

    session = auth_service.create_session(user_agent=request.headers.get("User-Agent"), ip_address=client_host)
    response.set_cookie(SESSION_COOKIE, session.token, httponly=True, samesite="strict")
    return LoginResponse(token=session.token, expires_at=session.expires_at)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    response: Response,
    session: Session = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Close the current session."""
    auth_service.invalidate_session(session.token)
    response.delete_cookie(SESSION_COOKIE)


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    request: ChangePasswordRequest,
    session: Session = Depends(require_auth),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Change the password. Every open session is closed, including this one.
    """
    if not auth_service.change_password(request.current_password, request.new_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")


@router.get("/session", response_model=SessionInfo)
def get_session_info(session: Session = Depends(require_auth)):
    """Information about the current session."""
    return SessionInfo.from_session(session)
