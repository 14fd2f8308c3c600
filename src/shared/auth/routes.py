"""Authentication routes: register, login and logout."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from src.shared.auth.database import get_db, User, AccessToken
from src.shared.auth.auth import hash_password, verify_password, create_access_token
from src.shared.auth.schemas import RegisterRequest, LoginRequest, AuthenticationResponse
from src.shared.auth.dependencies import get_current_token
from src.shared.auth.input_validation import (
    validate_email,
    validate_username,
    validate_password,
    validate_name,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def issue_token(db: Session, user: User) -> str:
    """Create an access token for the user and persist it. Does NOT commit."""
    access_token = create_access_token(user.username)
    db.add(AccessToken(token=access_token, user_id=user.id, logged_out=False))
    return access_token


def revoke_all_tokens(db: Session, user_id: int) -> int:
    """Mark every active token of a user as logged out. Does NOT commit."""
    active_tokens = db.query(AccessToken).filter(
        AccessToken.user_id == user_id,
        AccessToken.logged_out.is_(False)
    ).all()
    for token in active_tokens:
        token.logged_out = True
    return len(active_tokens)


def register_user(db: Session, data: RegisterRequest) -> str:
    """
    Create a new account and return its first access token.

    Raises:
        HTTPException 400 if the username or email is already registered
    """
    username = validate_username(data.username)
    email = validate_email(data.email)
    password = validate_password(data.password)
    name = validate_name(data.name) if data.name else None

    if db.query(User).filter(User.username == username).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already taken"
        )
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        name=name,
        created_at=datetime.utcnow()
    )
    db.add(user)
    db.flush()

    access_token = issue_token(db, user)
    db.commit()
    return access_token


def authenticate_user(db: Session, username: str, password: str) -> str:
    """
    Check credentials, revoke the user's earlier tokens and issue a new one.

    Raises:
        HTTPException 401 on unknown user or wrong password
    """
    normalized = (username or "").strip().lower()
    user = db.query(User).filter(User.username == normalized).first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    revoke_all_tokens(db, user.id)
    access_token = issue_token(db, user)
    db.commit()
    return access_token


@router.post("/register", response_model=AuthenticationResponse, status_code=status.HTTP_201_CREATED)
async def register(
    register_data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Create a new user account."""
    try:
        access_token = register_user(db, register_data)
    except HTTPException:
        raise
    except ValueError as e:
        # SECRET_KEY is missing
        logging.error(f"Failed to create token: {str(e)}")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error. Please contact support."
        )
    except Exception as e:
        logging.error(f"Register error: {str(e)}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create account. Please try again later."
        )

    return AuthenticationResponse(access_token=access_token)


@router.post("/login", response_model=AuthenticationResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate user and return access token."""
    try:
        access_token = authenticate_user(db, login_data.username, login_data.password)
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Login error: {str(e)}", exc_info=True)
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed. Please try again later."
        )

    return AuthenticationResponse(access_token=access_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(
    token: str = Depends(get_current_token),
    db: Session = Depends(get_db)
):
    """Revoke the bearer token used for this request."""
    stored = db.query(AccessToken).filter(AccessToken.token == token).first()
    stored.logged_out = True
    db.commit()
    return {"message": "Logged out successfully"}
