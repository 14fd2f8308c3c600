"""Social routes: posts, saved posts, comments, likes and follows."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.shared.auth.database import get_db, User
from src.shared.auth.dependencies import get_current_user, get_optional_user
from src.shared.realtime.connection_manager import get_push
from src.shared.social.database import Post, Like, Comment, PostSave
from src.shared.social import follow_utils, interaction_utils, post_utils
from src.shared.social.image_utils import process_image
from src.shared.users.user_utils import get_user_by_id
from src.shared.social.schemas import (
    PostCreate,
    PostResponse,
    CommentCreate,
    CommentResponse,
    LikeResponse,
    UserSummary,
    FollowResponse,
    FollowToggleResponse,
    SavedStatusResponse,
    CountResponse,
    ImageUploadResponse,
)

posts_router = APIRouter(prefix="/api/posts", tags=["posts"])
comments_router = APIRouter(prefix="/api/comments", tags=["comments"])
likes_router = APIRouter(prefix="/api/likes", tags=["likes"])
follows_router = APIRouter(prefix="/api/follows", tags=["follows"])


def build_post_responses(db: Session, posts: List[Post], viewer: Optional[User]) -> List[PostResponse]:
    """Attach owner name, counts and the viewer's like/save state to each post."""
    if not posts:
        return []

    post_ids = [post.id for post in posts]

    like_counts = db.query(
        Like.post_id,
        func.count(Like.id).label('count')
    ).filter(Like.post_id.in_(post_ids)).group_by(Like.post_id).all()
    like_count_map = {post_id: count for post_id, count in like_counts}

    comment_counts = db.query(
        Comment.post_id,
        func.count(Comment.id).label('count')
    ).filter(Comment.post_id.in_(post_ids)).group_by(Comment.post_id).all()
    comment_count_map = {post_id: count for post_id, count in comment_counts}

    liked_post_ids = set()
    saved_post_ids = set()
    if viewer is not None:
        liked_post_ids = {row[0] for row in db.query(Like.post_id).filter(
            Like.post_id.in_(post_ids),
            Like.user_id == viewer.id
        ).all()}
        saved_post_ids = {row[0] for row in db.query(PostSave.post_id).filter(
            PostSave.post_id.in_(post_ids),
            PostSave.user_id == viewer.id
        ).all()}

    user_ids = list(set(post.user_id for post in posts))
    username_map = {user.id: user.username for user in db.query(User).filter(User.id.in_(user_ids)).all()}

    responses = []
    for post in posts:
        responses.append(PostResponse(
            id=post.id,
            user_id=post.user_id,
            username=username_map.get(post.user_id),
            content=post.content,
            caption=post.caption,
            display_caption=post_utils.build_display_caption(post.caption, post.tagged_people),
            image_urls=post.image_urls or [],
            tagged_people=post.tagged_people or [],
            created_at=post.created_at,
            like_count=like_count_map.get(post.id, 0),
            comment_count=comment_count_map.get(post.id, 0),
            is_liked=post.id in liked_post_ids,
            is_saved=post.id in saved_post_ids,
        ))
    return responses


def build_follow_response(db: Session, user: User, viewer: User) -> FollowResponse:
    return FollowResponse(
        user_id=user.id,
        username=user.username,
        profile_picture=user.profile_picture,
        is_following=follow_utils.is_following(db, viewer.id, user.id),
        followers_count=follow_utils.get_followers_count(db, user.id),
        following_count=follow_utils.get_following_count(db, user.id),
        posts_count=follow_utils.get_posts_count(db, user.id),
    )


def to_comment_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        user_id=comment.user_id,
        username=comment.user.username if comment.user else None,
        profile_picture=comment.user.profile_picture if comment.user else None,
        comment=comment.comment,
        created_at=comment.created_at,
    )


# Posts

@posts_router.post("/images/upload", response_model=ImageUploadResponse)
async def upload_post_image(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
):
    """
    Upload an image for a post as multipart form data.
    Returns image URL and optional thumbnail URL under /uploads.
    """
    try:
        image_url, thumbnail_url = process_image(image, f"posts/{current_user.id}")
    except HTTPException:
        raise
    except Exception as e:
        logging.error(f"Error uploading image: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload image"
        )

    return ImageUploadResponse(image_url=image_url, thumbnail_url=thumbnail_url)


@posts_router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    post_data: PostCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a new post.

    Declared sync so FastAPI runs it in the threadpool: image URLs are
    downloaded with a blocking HTTP client.
    """
    post = post_utils.create_post(
        db,
        current_user.id,
        post_data.content,
        post_data.caption,
        post_data.image_payloads(),
        post_data.tagged_people,
    )
    return build_post_responses(db, [post], current_user)[0]


@posts_router.get("", response_model=List[PostResponse])
async def get_all_posts(
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    return build_post_responses(db, post_utils.get_all_posts(db), current_user)


@posts_router.get("/user/{username}", response_model=List[PostResponse])
async def get_user_posts(
    username: str,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    return build_post_responses(db, post_utils.get_user_posts(db, username), current_user)


@posts_router.get("/feed", response_model=List[PostResponse])
async def get_feed(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get the news feed, newest first."""
    return build_post_responses(db, post_utils.get_news_feed(db, current_user.id), current_user)


@posts_router.get("/saved", response_model=List[PostResponse])
async def get_saved_posts(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return build_post_responses(db, interaction_utils.get_saved_posts(db, current_user.id), current_user)


@posts_router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db)
):
    return build_post_responses(db, [post_utils.get_post(db, post_id)], current_user)[0]


@posts_router.post("/{post_id}/save", response_model=SavedStatusResponse)
async def save_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    interaction_utils.save_post(db, post_id, current_user.id)
    return SavedStatusResponse(saved=True)


@posts_router.delete("/{post_id}/save", response_model=SavedStatusResponse)
async def unsave_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    interaction_utils.unsave_post(db, post_id, current_user.id)
    return SavedStatusResponse(saved=False)


@posts_router.get("/{post_id}/saved", response_model=SavedStatusResponse)
async def is_post_saved(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return SavedStatusResponse(saved=interaction_utils.is_post_saved(db, post_id, current_user.id))


# Comments

@comments_router.post("/post/{post_id}", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: int,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    push=Depends(get_push)
):
    """Create a comment on a post."""
    comment = interaction_utils.create_comment(db, push, post_id, current_user.id, comment_data.comment)
    return to_comment_response(comment)


@comments_router.get("/post/{post_id}", response_model=List[CommentResponse])
async def get_comments(
    post_id: int,
    db: Session = Depends(get_db)
):
    """Get comments for a post, newest first."""
    return [to_comment_response(c) for c in interaction_utils.get_post_comments(db, post_id)]


@comments_router.get("/count/post/{post_id}", response_model=CountResponse)
async def count_comments(
    post_id: int,
    db: Session = Depends(get_db)
):
    return CountResponse(count=interaction_utils.count_post_comments(db, post_id))


@comments_router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a comment. Only the author can delete."""
    interaction_utils.delete_comment(db, comment_id, current_user.id)
    return None


# Likes

@likes_router.post("/post/{post_id}", response_model=LikeResponse)
async def like_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    push=Depends(get_push)
):
    """Like a post. Liking an already liked post returns the existing like."""
    like = interaction_utils.like_post(db, push, post_id, current_user.id)
    return LikeResponse(
        id=like.id,
        post_id=like.post_id,
        user_id=like.user_id,
        username=current_user.username,
        created_at=like.created_at,
    )


@likes_router.delete("/post/{post_id}")
async def unlike_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    interaction_utils.unlike_post(db, post_id, current_user.id)
    return {"liked": False}


@likes_router.get("/check/post/{post_id}")
async def check_like(
    post_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"liked": interaction_utils.has_user_liked_post(db, post_id, current_user.id)}


@likes_router.get("/count/post/{post_id}", response_model=CountResponse)
async def like_count(
    post_id: int,
    db: Session = Depends(get_db)
):
    return CountResponse(count=interaction_utils.get_like_count(db, post_id))


@likes_router.get("/users/post/{post_id}", response_model=List[UserSummary])
async def users_who_liked(
    post_id: int,
    db: Session = Depends(get_db)
):
    return interaction_utils.get_users_who_liked_post(db, post_id)


# Follows

@follows_router.post("/{user_id}", response_model=FollowToggleResponse)
async def toggle_follow(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    push=Depends(get_push)
):
    """Follow a user, or unfollow if already following."""
    follow = follow_utils.follow_user(db, push, current_user.id, user_id)
    return FollowToggleResponse(
        status="followed" if follow is not None else "unfollowed",
        followers_count=follow_utils.get_followers_count(db, user_id),
    )


@follows_router.delete("/{user_id}", response_model=FollowToggleResponse)
async def unfollow(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    follow_utils.unfollow_user(db, current_user.id, user_id)
    return FollowToggleResponse(
        status="unfollowed",
        followers_count=follow_utils.get_followers_count(db, user_id),
    )


@follows_router.get("/check/{user_id}")
async def check_follow(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"following": follow_utils.is_following(db, current_user.id, user_id)}


@follows_router.get("/user/{user_id}", response_model=FollowResponse)
async def get_user_with_follow_counts(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return build_follow_response(db, get_user_by_id(db, user_id), current_user)


@follows_router.get("/followers/count/{user_id}", response_model=CountResponse)
async def followers_count(user_id: int, db: Session = Depends(get_db)):
    return CountResponse(count=follow_utils.get_followers_count(db, user_id))


@follows_router.get("/following/count/{user_id}", response_model=CountResponse)
async def following_count(user_id: int, db: Session = Depends(get_db)):
    return CountResponse(count=follow_utils.get_following_count(db, user_id))


@follows_router.get("/posts/count/{user_id}", response_model=CountResponse)
async def posts_count(user_id: int, db: Session = Depends(get_db)):
    return CountResponse(count=follow_utils.get_posts_count(db, user_id))


@follows_router.get("/followers/{user_id}", response_model=List[FollowResponse])
async def get_followers(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [build_follow_response(db, u, current_user) for u in follow_utils.get_followers(db, user_id)]


@follows_router.get("/following/{user_id}", response_model=List[FollowResponse])
async def get_following(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [build_follow_response(db, u, current_user) for u in follow_utils.get_following(db, user_id)]
