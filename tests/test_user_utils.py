"""
Tests for user search and profile picture replacement.
"""
import pytest

from src.shared.auth.database import User
from src.shared.social.image_utils import resolve_stored_path
from src.shared.users import user_utils


class TestSearch:

    def test_underscore_matches_literally(self, db, make_user):
        make_user("alice")
        make_user("bob_b")
        assert [u.username for u in user_utils.search_users(db, "_")] == ["bob_b"]

    def test_percent_matches_literally(self, db, make_user):
        make_user("alice", name="Alice 100%")
        make_user("bob", name="Bob")
        assert [u.username for u in user_utils.search_users(db, "%")] == ["alice"]

    def test_matches_display_name(self, db, make_user):
        make_user("ann", name="Annie Hall")
        assert [u.username for u in user_utils.search_users(db, "hall")] == ["ann"]


class TestProfileImage:

    def test_replacement_removes_old_file(self, db, make_user):
        alice = make_user("alice")
        first = user_utils.update_profile_image(db, alice.id, "").profile_picture
        second = user_utils.update_profile_image(db, alice.id, "").profile_picture

        assert first != second
        assert not resolve_stored_path(first).exists()
        assert resolve_stored_path(second).is_file()

    def test_failed_store_keeps_old_picture(self, db, make_user, monkeypatch):
        alice = make_user("alice")
        old = user_utils.update_profile_image(db, alice.id, "").profile_picture

        def broken_store(data, directory):
            raise OSError("disk full")

        monkeypatch.setattr(user_utils, "store_image", broken_store)
        with pytest.raises(OSError):
            user_utils.update_profile_image(db, alice.id, "")
        db.rollback()

        assert resolve_stored_path(old).is_file()
        assert db.query(User).filter(User.id == alice.id).one().profile_picture == old
