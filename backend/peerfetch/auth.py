"""Session cookie handling and FastAPI security dependencies.

The session cookie holds a signed JWT wrapping a random session token;
`get_current_user` verifies the signature, looks the token up in the
`loginsession` table and returns the owning `User`. `get_approved_user`
and `get_admin_user` layer the approval and admin checks on top.

Token verification raises HTTPExceptions on failure so the helpers can
be used directly inside route dependencies.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models
from .config import settings
from .database import get_session
from .services import AuthService

logger = logging.getLogger("peerfetch.auth")

# auto_error=False: the cookie is the primary credential, bearer is a fallback
bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and verify a signed session token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='Session expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='Unauthorized')


def session_id_from_token(token: Optional[str]) -> Optional[str]:
    """Best-effort extraction of the session id for logout.

    Expiry is not checked so a stale cookie still removes its row; a
    forged token yields None.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=[settings.SESSION_ALGORITHM],
            options={"verify_exp": False},
        )
    except jwt.InvalidTokenError:
        return None
    return payload.get('sid')


def read_session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    """Return the raw signed token from the cookie, else the bearer header."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    return token


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Raises HTTPException(401) for a missing, forged, expired or revoked
    session.
    """
    token = read_session_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail='Unauthorized')
    payload = decode_token(token)
    sid = payload.get('sid')
    if not sid:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = AuthService(db).resolve_session(sid)
    if not user or user.id != payload.get('user_id'):
        logger.info("session_rejected path=%s", request.url.path)
        raise HTTPException(status_code=401, detail='Unauthorized')
    return user


def get_approved_user(user: models.User = Depends(get_current_user)) -> models.User:
    """Authenticated user whose account an admin has approved."""
    if not user.is_approved:
        raise HTTPException(status_code=403, detail='Account pending admin approval')
    return user


def get_admin_user(user: models.User = Depends(get_current_user)) -> models.User:
    """Authenticated admin."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail='Forbidden - Admin access required')
    return user


def set_session_cookie(response: Response, signed_token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=signed_token,
        max_age=settings.SESSION_TTL_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite='lax',
        path='/',
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path='/')
