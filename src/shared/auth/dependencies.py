"""Authentication dependencies for protected routes."""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from src.shared.auth.database import get_db, User, AccessToken
from src.shared.auth.auth import verify_token

# Use auto_error=False so a missing header reaches our own 401 (or an anonymous read)
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_token_user(db: Session, token: str) -> User:
    """
    Resolve the user a bearer token belongs to.

    The token must have a valid signature, be unexpired, and still be active
    in the access_tokens table (not revoked by logout or a newer login).
    """
    payload = verify_token(token)
    if payload is None:
        raise _unauthorized("Invalid authentication credentials")

    username = payload.get("sub")
    if username is None:
        raise _unauthorized("Invalid token payload")

    stored = db.query(AccessToken).filter(AccessToken.token == token).first()
    if stored is None or stored.logged_out:
        raise _unauthorized("Token has been revoked")

    user = db.query(User).filter(User.username == username).first()
    if user is None or user.id != stored.user_id:
        raise _unauthorized("User not found")

    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get the current authenticated user from JWT token."""
    if credentials is None:
        raise _unauthorized("Authentication required")
    return resolve_token_user(db, credentials.credentials)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Like get_current_user, but anonymous requests get None instead of a 401."""
    if credentials is None:
        return None
    return resolve_token_user(db, credentials.credentials)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> str:
    """Return the raw bearer token of the request once it resolves to an active session."""
    if credentials is None:
        raise _unauthorized("Authentication required")
    resolve_token_user(db, credentials.credentials)
    return credentials.credentials
