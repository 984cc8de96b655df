from __future__ import annotations

import logging

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import unauthorized
from app.models import User
from app.services.sessions import (
    DatabaseSessionStore,
    SessionManager,
    get_memory_session_store,
)
from app.settings import uses_memory_sessions

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("app.security")

BEARER_SCHEME = "Bearer"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        # Invalid/legacy hash values should not crash auth flow.
        return False


def parse_bearer_header(raw_header: str | None) -> str | None:
    """Return the token of a strict ``Bearer <token>`` header, else None.

    The scheme is case-sensitive and must be followed by exactly one space.
    """
    if not raw_header:
        return None
    scheme, separator, token = raw_header.partition(" ")
    if scheme != BEARER_SCHEME or not separator:
        return None
    if not token or any(ch.isspace() for ch in token):
        return None
    return token


def get_session_manager(db: Session = Depends(get_db)) -> SessionManager:
    if uses_memory_sessions():
        return SessionManager(get_memory_session_store())
    return SessionManager(DatabaseSessionStore(db))


def require_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> str:
    token = parse_bearer_header(request.headers.get("Authorization"))
    if credentials is None or token is None:
        raise unauthorized("Missing bearer token.")
    return token


def require_user(
    request: Request,
    token: str = Depends(require_session_token),
    sessions: SessionManager = Depends(get_session_manager),
    db: Session = Depends(get_db),
) -> User:
    user_id = sessions.resolve_session(token)
    if user_id is None:
        raise unauthorized("Session expired.", code="SESSION_EXPIRED")

    user = db.get(User, user_id)
    if user is None:
        sessions.destroy_session(token)
        logger.warning("session_user_missing", extra={"user_id": user_id})
        raise unauthorized("User not found.")

    request.state.user = user
    request.state.actor = "user"
    request.state.actor_id = str(user.id)
    request.state.company_id = user.company_id
    return user
