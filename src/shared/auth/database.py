"""Database setup and configuration."""

from sqlalchemy import create_engine, Column, String, Boolean, DateTime, Integer, Text, ForeignKey
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool
from datetime import datetime
import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()

# DATABASE_URL should be set as an environment variable (PostgreSQL in production)
DATABASE_URL = os.environ.get("DATABASE_URL")

if not DATABASE_URL:
    raise ValueError(
        "DATABASE_URL environment variable is required. "
        "Please set it to your database connection string."
    )

# Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

if DATABASE_URL.startswith("sqlite"):
    # Single shared connection so in-memory databases survive across sessions and threads
    engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
else:
    # PostgreSQL connection pool configuration
    engine_kwargs = {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Attempts made by insert_or_get before giving up on a contended unique key
INSERT_OR_GET_ATTEMPTS = 3


class User(Base):
    """User account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=False)  # Stored lowercase
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    name = Column(String(100), nullable=True)  # Display name
    bio = Column(Text, nullable=True)
    profile_picture = Column(String(500), nullable=True)  # URL under /uploads
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tokens = relationship("AccessToken", back_populates="user", cascade="all, delete-orphan")


class AccessToken(Base):
    """Issued bearer token, kept so it can be revoked on logout or re-login."""
    __tablename__ = "access_tokens"

    id = Column(Integer, primary_key=True)
    token = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    logged_out = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="tokens")


def init_db():
    """Initialize database tables for every feature module."""
    # Model modules register their tables on Base when imported
    from src.shared.social import database as _social_models  # noqa: F401
    from src.shared.chat import database as _chat_models  # noqa: F401
    from src.shared.notifications import database as _notification_models  # noqa: F401

    Base.metadata.create_all(bind=engine, checkfirst=True)
    logging.info("Database tables initialized successfully")


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def insert_or_get(db, find, build):
    """
    Return the row found by `find()`, inserting `build()` when there is none.

    The lookup and the insert are not atomic, so a concurrent request can insert
    the same unique key in between. The unique constraint rejects the second
    insert; we roll back and look again instead of failing.

    Args:
        db: Database session
        find: Callable returning the existing row or None
        build: Callable returning a new, unsaved row

    Returns:
        Tuple of (row, created)
    """
    last_error = None
    for _ in range(INSERT_OR_GET_ATTEMPTS):
        existing = find()
        if existing is not None:
            return existing, False

        row = build()
        db.add(row)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            last_error = e
            logging.info(f"Unique key race on {type(row).__name__}, retrying lookup")
            continue
        db.refresh(row)
        return row, True

    raise last_error
