"""
Tests for likes, comments and saved posts, including the insert race guard.
"""
import pytest
from fastapi import HTTPException

from src.shared.auth.database import insert_or_get
from src.shared.notifications.database import Notification
from src.shared.social import interaction_utils
from src.shared.social.database import Like, PostSave
from src.shared.social.post_utils import create_post


@pytest.fixture
def bobs_post(db, make_user):
    bob = make_user("bob")
    return create_post(db, bob.id, "sunset", "golden hour", [], [])


class TestInsertOrGet:

    def test_creates_when_missing(self, db, make_user, bobs_post):
        alice = make_user("alice")
        like, created = insert_or_get(
            db,
            lambda: db.query(Like).filter_by(post_id=bobs_post.id, user_id=alice.id).first(),
            lambda: Like(post_id=bobs_post.id, user_id=alice.id),
        )
        assert created is True
        assert like.id is not None

    def test_lost_race_returns_existing_row(self, db, make_user, bobs_post):
        alice = make_user("alice")
        existing = Like(post_id=bobs_post.id, user_id=alice.id)
        db.add(existing)
        db.commit()
        existing_id = existing.id

        calls = {"find": 0}

        def find():
            # The first lookup misses, as if a concurrent insert landed right after it
            calls["find"] += 1
            if calls["find"] == 1:
                return None
            return db.query(Like).filter_by(post_id=bobs_post.id, user_id=alice.id).first()

        like, created = insert_or_get(
            db,
            find,
            lambda: Like(post_id=bobs_post.id, user_id=alice.id),
        )
        assert created is False
        assert like.id == existing_id
        assert calls["find"] == 2
        assert db.query(Like).count() == 1


class TestLikes:

    def test_like_is_idempotent(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        first = interaction_utils.like_post(db, push, bobs_post.id, alice.id)
        second = interaction_utils.like_post(db, push, bobs_post.id, alice.id)

        assert first.id == second.id
        assert interaction_utils.get_like_count(db, bobs_post.id) == 1
        assert db.query(Notification).count() == 1

    def test_like_notifies_owner(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        interaction_utils.like_post(db, push, bobs_post.id, alice.id)
        notification = db.query(Notification).one()
        assert notification.message == "alice liked your post"
        assert notification.to_user_id == bobs_post.user_id

    def test_liking_own_post_does_not_notify(self, db, push, bobs_post):
        interaction_utils.like_post(db, push, bobs_post.id, bobs_post.user_id)
        assert interaction_utils.get_like_count(db, bobs_post.id) == 1
        assert db.query(Notification).count() == 0

    def test_unlike(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        interaction_utils.like_post(db, push, bobs_post.id, alice.id)
        interaction_utils.unlike_post(db, bobs_post.id, alice.id)
        assert not interaction_utils.has_user_liked_post(db, bobs_post.id, alice.id)
        # Second unlike is a no-op
        interaction_utils.unlike_post(db, bobs_post.id, alice.id)
        assert interaction_utils.get_like_count(db, bobs_post.id) == 0

    def test_like_missing_post(self, db, make_user, push):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            interaction_utils.like_post(db, push, 321, alice.id)
        assert exc.value.status_code == 404

    def test_users_who_liked(self, db, make_user, push, bobs_post):
        alice, carol = make_user("alice"), make_user("carol")
        interaction_utils.like_post(db, push, bobs_post.id, alice.id)
        interaction_utils.like_post(db, push, bobs_post.id, carol.id)
        names = {u.username for u in interaction_utils.get_users_who_liked_post(db, bobs_post.id)}
        assert names == {"alice", "carol"}


class TestComments:

    def test_comment_notifies_owner(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        comment = interaction_utils.create_comment(db, push, bobs_post.id, alice.id, "  lovely  ")
        assert comment.comment == "lovely"
        assert comment.user_id == alice.id
        assert db.query(Notification).one().message == "alice commented on your post: lovely"

    def test_comment_on_own_post_no_notification(self, db, push, bobs_post):
        interaction_utils.create_comment(db, push, bobs_post.id, bobs_post.user_id, "thanks all")
        assert db.query(Notification).count() == 0

    def test_empty_comment_rejected(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            interaction_utils.create_comment(db, push, bobs_post.id, alice.id, "")
        assert exc.value.status_code == 400

    def test_comments_newest_first_and_count(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        interaction_utils.create_comment(db, push, bobs_post.id, alice.id, "first")
        interaction_utils.create_comment(db, push, bobs_post.id, alice.id, "second")
        comments = interaction_utils.get_post_comments(db, bobs_post.id)
        assert [c.comment for c in comments] == ["second", "first"]
        assert interaction_utils.count_post_comments(db, bobs_post.id) == 2

    def test_only_author_deletes(self, db, make_user, push, bobs_post):
        alice = make_user("alice")
        comment = interaction_utils.create_comment(db, push, bobs_post.id, alice.id, "mine")

        with pytest.raises(HTTPException) as exc:
            interaction_utils.delete_comment(db, comment.id, bobs_post.user_id)
        assert exc.value.status_code == 403

        interaction_utils.delete_comment(db, comment.id, alice.id)
        assert interaction_utils.count_post_comments(db, bobs_post.id) == 0

    def test_delete_missing_comment(self, db, make_user):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            interaction_utils.delete_comment(db, 999, alice.id)
        assert exc.value.status_code == 404


class TestSaves:

    def test_save_twice_keeps_one_row(self, db, make_user, bobs_post):
        alice = make_user("alice")
        interaction_utils.save_post(db, bobs_post.id, alice.id)
        interaction_utils.save_post(db, bobs_post.id, alice.id)
        assert db.query(PostSave).count() == 1
        assert interaction_utils.is_post_saved(db, bobs_post.id, alice.id)

    def test_unsave(self, db, make_user, bobs_post):
        alice = make_user("alice")
        interaction_utils.save_post(db, bobs_post.id, alice.id)
        interaction_utils.unsave_post(db, bobs_post.id, alice.id)
        interaction_utils.unsave_post(db, bobs_post.id, alice.id)
        assert not interaction_utils.is_post_saved(db, bobs_post.id, alice.id)

    def test_saved_posts_most_recent_first(self, db, make_user, bobs_post):
        alice = make_user("alice")
        other = create_post(db, bobs_post.user_id, "second", None, [], [])
        interaction_utils.save_post(db, bobs_post.id, alice.id)
        interaction_utils.save_post(db, other.id, alice.id)
        saved = interaction_utils.get_saved_posts(db, alice.id)
        assert [p.id for p in saved] == [other.id, bobs_post.id]
