"""Database models for posts, likes, comments, follows and saved posts."""

from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, JSON, UniqueConstraint, CheckConstraint, Index
from sqlalchemy.orm import relationship
from datetime import datetime

# Import Base from auth database to use the same declarative base
from src.shared.auth.database import Base


class Post(Base):
    """Post model for the feed."""
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    caption = Column(Text, nullable=True)
    image_urls = Column(JSON, nullable=False, default=list)  # URLs under /uploads
    tagged_people = Column(JSON, nullable=False, default=list)  # Usernames
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    user = relationship("User")
    likes = relationship("Like", back_populates="post", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")
    saves = relationship("PostSave", back_populates="post", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_posts_user_created', 'user_id', 'created_at'),
    )


class Like(Base):
    """Like model for posts."""
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    post = relationship("Post", back_populates="likes")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint('post_id', 'user_id', name='uq_like_post_user'),
    )


class Comment(Base):
    """Comment model for posts."""
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    post = relationship("Post", back_populates="comments")
    user = relationship("User")

    __table_args__ = (
        Index('idx_comments_post_created', 'post_id', 'created_at'),
    )


class Follow(Base):
    """Follow edge from follower to followee. One edge per ordered pair."""
    __tablename__ = "follows"

    follower_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    followee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    follower = relationship("User", foreign_keys=[follower_id])
    followee = relationship("User", foreign_keys=[followee_id])

    __table_args__ = (
        CheckConstraint('follower_id <> followee_id', name='check_no_self_follow'),
        Index('idx_follows_follower', 'follower_id'),
        Index('idx_follows_followee', 'followee_id'),
    )


class PostSave(Base):
    """Bookmark of a post by a user."""
    __tablename__ = "post_saves"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    saved_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    post = relationship("Post", back_populates="saves")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint('user_id', 'post_id', name='uq_post_save_user_post'),
    )
