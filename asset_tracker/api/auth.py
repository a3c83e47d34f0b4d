import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..auth import authenticate, get_session_id, get_session_manager
from ..config import get_settings
from ..database import get_db
from ..errors import DeliveryError, InvalidCredentials, NotFound, StorageError, ValidationError
from ..services.password_reset import PasswordResetService
from ..services.sessions import SessionManager
from .deps import get_mailer
from .schemas import ForgotPasswordRequest, LoginRequest, ResetPasswordRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

RESET_SENT = "Reset link sent to your email."
RESET_SENT_UNIFORM = "If the account exists, a reset link has been sent to its email."


def _set_session_cookie(response: Response, session_id: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite=settings.SESSION_COOKIE_SAMESITE,
    )


@router.post("/login")
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
):
    if not payload.username or not payload.password:
        raise ValidationError("Username and password required")
    try:
        principal = authenticate(db, payload.username, payload.password)
    except InvalidCredentials as exc:
        # Kept as 200 for existing clients.
        return {"success": False, "error": exc.user_message}
    _set_session_cookie(response, sessions.create(principal))
    return {"success": True, "user": principal.to_dict()}


@router.post("/logout")
def logout(
    response: Response,
    session_id: str | None = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager),
):
    try:
        sessions.destroy(session_id)
    except StorageError:
        logger.exception("Failed to destroy session on logout")
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)
    return {"success": True}


@router.get("/me")
def me(
    session_id: str | None = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager),
):
    try:
        principal = sessions.resolve(session_id)
    except StorageError:
        logger.exception("Session lookup failed")
        principal = None
    if principal is None:
        return {"loggedIn": False}
    return {"loggedIn": True, "username": principal.username, "role": principal.role}


@router.post("/forgot-password")
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
):
    settings = get_settings()
    service = PasswordResetService(db, mailer)
    try:
        service.request_reset(payload.username)
    except NotFound as exc:
        if settings.RESET_REVEAL_UNKNOWN_USERS:
            return JSONResponse(status_code=404, content=exc.to_dict())
        return {"success": True, "message": RESET_SENT_UNIFORM}
    except DeliveryError:
        if settings.RESET_REVEAL_UNKNOWN_USERS:
            raise
        # Uniform mode answers alike whether or not the account exists.
        logger.exception("Reset link delivery failed")
        return {"success": True, "message": RESET_SENT_UNIFORM}
    if settings.RESET_REVEAL_UNKNOWN_USERS:
        return {"success": True, "message": RESET_SENT}
    return {"success": True, "message": RESET_SENT_UNIFORM}


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db),
    mailer=Depends(get_mailer),
):
    PasswordResetService(db, mailer).reset_password(payload.token, payload.new_password)
    return {"success": True, "message": "Password successfully reset"}
