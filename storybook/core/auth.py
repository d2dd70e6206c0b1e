"""
Authentication helpers for verifying access tokens and resolving the current User.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storybook.core.security import decode_access_token
from storybook.database import get_db
from storybook.models import User

logger = logging.getLogger(__name__)


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_bearer_token(request: Request) -> str:
    """
    Extract 'Bearer <token>' from Authorization header.
    """
    auth = request.headers.get("Authorization")
    if not auth:
        raise _unauthorized("Missing Authorization header")

    parts = auth.split()
    if len(parts) != 2:
        raise _unauthorized("Invalid Authorization header format. Expected 'Bearer <token>'")

    scheme, token = parts
    if scheme.lower() != "bearer":
        raise _unauthorized("Invalid auth scheme. Expected 'Bearer'")

    if not token.strip():
        raise _unauthorized("Empty bearer token")

    return token


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """
    FastAPI dependency: returns the current authenticated User (SQLAlchemy object).

    - Reads Authorization: Bearer <token>
    - Verifies the JWT signature and expiry
    - Loads the user referenced by the `sub` claim
    """
    token = _extract_bearer_token(request)
    payload = decode_access_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Token missing subject (sub)")

    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        raise _unauthorized("Invalid user ID in token")

    user = db.get(User, user_id)
    if user is None:
        logger.warning("Token subject %s does not match any user", user_id)
        raise _unauthorized("User not found")

    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Optional user dependency - returns None when the request carries no usable token."""
    if not request.headers.get("Authorization"):
        return None
    try:
        return get_current_user(request, db)
    except HTTPException:
        return None


def require_admin(user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency: the current user, rejected with 403 unless they are an admin."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
