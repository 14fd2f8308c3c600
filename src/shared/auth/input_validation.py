"""
Input validation and sanitization utilities.
Protects against XSS and other injection attacks in user-supplied profile fields.
"""

import re
import html
from typing import Optional
from fastapi import HTTPException, status


# Maximum lengths for different input types
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 255
MAX_USERNAME_LENGTH = 30
MIN_USERNAME_LENGTH = 3
MAX_BIO_LENGTH = 500
MAX_TEXT_LENGTH = 1000

RESERVED_USERNAMES = {
    'admin', 'administrator', 'root', 'system', 'support',
    'api', 'app', 'web', 'help', 'info',
    'null', 'undefined', 'none',
    'snapgram', 'me', 'search', 'feed',
}

DANGEROUS_PATTERNS = [
    r'<script',
    r'javascript:',
    r'on\w+\s*=',  # onclick=, onerror=, etc.
    r'data:text/html',
    r'vbscript:',
]


def sanitize_text(text: str, max_length: Optional[int] = None, allow_html: bool = False) -> str:
    """
    Sanitize text input to prevent XSS attacks.

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length (None for no limit)
        allow_html: If False, HTML entities are escaped (default: False)

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    text = text.strip()

    if not allow_html:
        text = html.escape(text)

    if max_length and len(text) > max_length:
        text = text[:max_length]

    return text


def validate_name(name: str, field_name: str = "Name") -> str:
    """
    Validate and sanitize a display name.

    Raises:
        HTTPException if validation fails
    """
    if not name or not name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field_name} cannot be empty"
        )

    for pattern in DANGEROUS_PATTERNS:
        if re.search(pattern, name, re.IGNORECASE):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field_name} contains invalid characters"
            )

    if len(name.strip()) > MAX_NAME_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field_name} must be no more than {MAX_NAME_LENGTH} characters"
        )

    return sanitize_text(name, max_length=MAX_NAME_LENGTH)


def validate_email(email: str) -> str:
    """
    Validate email address length and normalize it.
    Pydantic's EmailStr already validates format.

    Returns:
        Normalized email (lowercase)
    """
    if not email or not email.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email cannot be empty"
        )

    email = email.strip().lower()

    if len(email) > MAX_EMAIL_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Email must be no more than {MAX_EMAIL_LENGTH} characters"
        )

    return email


def validate_username(username: str) -> str:
    """
    Validate and sanitize username.
    Usernames are alphanumeric with underscores and dots, lowercase.

    Returns:
        Sanitized username (lowercase)

    Raises:
        HTTPException if validation fails
    """
    if not username or not username.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username cannot be empty"
        )

    username = username.strip().lower()

    if len(username) < MIN_USERNAME_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Username must be at least {MIN_USERNAME_LENGTH} characters"
        )

    if len(username) > MAX_USERNAME_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Username must be no more than {MAX_USERNAME_LENGTH} characters"
        )

    if not re.match(r'^[a-z0-9_.]+$', username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username can only contain lowercase letters, numbers, dots and underscores"
        )

    if username in RESERVED_USERNAMES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This username is reserved and cannot be used"
        )

    return username


def validate_password(password: str) -> str:
    """
    Validate password strength and length.

    Raises:
        HTTPException if validation fails
    """
    if not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password cannot be empty"
        )

    if len(password) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 8 characters"
        )

    # Bcrypt has a 72-byte limit
    if len(password.encode('utf-8')) > 72:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password is too long (maximum 72 bytes). Please use a shorter password."
        )

    return password


def validate_bio(bio: Optional[str]) -> Optional[str]:
    """Validate and escape a profile bio. Empty bios are stored as None."""
    if bio is None or not bio.strip():
        return None

    if len(bio.strip()) > MAX_BIO_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Bio must be no more than {MAX_BIO_LENGTH} characters"
        )

    return sanitize_text(bio, max_length=MAX_BIO_LENGTH)


def validate_text_content(text: Optional[str], field_name: str = "Content") -> str:
    """Require non-blank text of bounded length (comments, chat messages)."""
    if text is None or not text.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field_name} cannot be empty"
        )

    text = text.strip()
    if len(text) > MAX_TEXT_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field_name} must be no more than {MAX_TEXT_LENGTH} characters"
        )

    return text
