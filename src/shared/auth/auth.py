"""Authentication utilities: password hashing and JWT token generation."""

import bcrypt
from jose import JWTError, jwt
from datetime import datetime, timedelta
import logging
import os
import uuid

# JWT settings
SECRET_KEY = os.environ.get("SECRET_KEY")
if not SECRET_KEY:
    logging.warning(
        "SECRET_KEY environment variable is not set. "
        "JWT token operations will fail. "
        "Please set SECRET_KEY to a secure random string."
    )
ALGORITHM = "HS256"
# Access tokens live for a day
ACCESS_TOKEN_EXPIRE_HOURS = int(os.environ.get("ACCESS_TOKEN_EXPIRE_HOURS", "24"))


def _truncate_password(password: str) -> bytes:
    """Bcrypt has a 72-byte limit; truncate without splitting a multi-byte character."""
    password_bytes = password.encode('utf-8')
    if len(password_bytes) > 72:
        truncated = password_bytes[:72]
        # Remove any incomplete trailing bytes
        while truncated and truncated[-1] & 0x80 and not (truncated[-1] & 0x40):
            truncated = truncated[:-1]
        password_bytes = truncated
    return password_bytes


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(_truncate_password(password), salt)
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(_truncate_password(plain_password), hashed_password.encode('utf-8'))


def create_access_token(username: str, expires_delta: timedelta = None) -> str:
    """Create a JWT access token whose subject is the username."""
    if not SECRET_KEY:
        raise ValueError(
            "SECRET_KEY environment variable is required for token creation. "
            "Please set it to a secure random string (e.g., generate with: python -c 'import secrets; print(secrets.token_urlsafe(32))')"
        )
    now = datetime.utcnow()
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    # jti keeps tokens issued within the same second distinct
    to_encode = {"sub": username, "iat": now, "exp": expire, "type": "access", "jti": str(uuid.uuid4())}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> dict:
    """
    Verify and decode a JWT access token.

    Only checks signature, expiry and token type; revocation is checked
    against the access_tokens table by the caller.

    Returns:
        Decoded token payload or None if invalid
    """
    if not SECRET_KEY:
        logging.error("SECRET_KEY is not set. Cannot verify token.")
        return None
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload
