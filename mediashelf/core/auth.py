# mediashelf/core/auth.py
import logging
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlmodel import Session

from mediashelf.core.config import get_settings
from mediashelf.database import get_session
from mediashelf.models.user import User
from mediashelf.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)

settings = get_settings()

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can support anonymous callers on public endpoints.
bearer_scheme = HTTPBearer(auto_error=False)

# PBKDF2-SHA256 needs no native backend
password_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)

user_repo = UserRepository()


def hash_secret(plaintext: str) -> str:
    """Hash a password for storage."""
    return password_context.hash(plaintext)


def issue_access_token(user: User) -> str:
    """
    Sign a new access token for `user`.

    The token carries the account id and username, so it must be reissued
    whenever the username changes.
    """
    claims = {"userId": user.id, "username": user.username}
    return jwt.encode(claims, settings.TOKEN_SECRET, algorithm=settings.TOKEN_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        HTTPException(401): if the token signature is invalid.
    """
    try:
        return jwt.decode(
            token,
            settings.TOKEN_SECRET,
            algorithms=[settings.TOKEN_ALGORITHM],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the calling account from its bearer token.

    Flow:
      1. No Authorization header => anonymous => return None.
      2. Decode the token => extract userId.
      3. Load the account; the token must be the one currently stored on it
         (a regenerated token revokes the old one).

    Raises:
        HTTPException(401): if the token is malformed, unknown or stale.
    """
    if credentials is None:
        return None

    token = credentials.credentials
    claims = decode_access_token(token)
    user_id = claims.get("userId")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing userId",
        )

    user = user_repo.get_by_id(session, user_id)
    if user is None or user.token != token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    """
    Enforce authentication with an active, unlocked account.

    Raises:
        HTTPException(401): if the caller is anonymous, inactive or locked.
    """
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    if not user.is_root and (not user.is_active or user.is_locked):
        logger.warning(f"Rejected request from inactive or locked user {user.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )
    return user

