"""
Tests for the chat store: threads, ordering, unread tracking and pushes.
"""
import pytest
from fastapi import HTTPException

from src.shared.chat import chat_utils
from src.shared.chat.database import Chat, Message
from src.shared.realtime.connection_manager import QUEUE_MESSAGES, QUEUE_READ_RECEIPTS


class ExplodingPush:
    def send_to_user(self, user_id, destination, payload):
        raise RuntimeError("socket gone")


class TestGetOrCreateChat:

    def test_chat_with_self_rejected(self, db, make_user):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            chat_utils.get_or_create_chat(db, alice.id, alice.id)
        assert exc.value.status_code == 400

    def test_unknown_user(self, db, make_user):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            chat_utils.get_or_create_chat(db, alice.id, 999)
        assert exc.value.status_code == 404

    def test_pair_is_unordered(self, db, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        first = chat_utils.get_or_create_chat(db, alice.id, bob.id)
        second = chat_utils.get_or_create_chat(db, bob.id, alice.id)
        assert first.chat_id == second.chat_id
        assert db.query(Chat).count() == 1

    def test_summary_from_callers_side(self, db, make_user):
        alice, bob = make_user("alice"), make_user("bob", name="Bob B")
        chat = chat_utils.get_or_create_chat(db, alice.id, bob.id)
        assert chat.other_user.user_id == bob.id
        assert chat.other_user.name == "Bob B"
        assert chat.recent_messages == []
        assert chat.has_unread_messages is False


class TestSendMessage:

    def test_message_persisted_and_pushed(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        message = chat_utils.send_message(db, push, alice.id, bob.id, "hi")

        assert message.content == "hi"
        assert message.sender_id == alice.id
        assert message.receiver_id == bob.id
        assert message.is_read is False

        pushed = push.sent_to(bob.id, QUEUE_MESSAGES)
        assert len(pushed) == 1
        assert pushed[0]["message_id"] == message.message_id
        assert push.sent_to(alice.id) == []

    def test_thread_created_lazily(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        assert db.query(Chat).count() == 0
        chat_utils.send_message(db, push, alice.id, bob.id, "hi")
        chat_utils.send_message(db, push, bob.id, alice.id, "hey")
        assert db.query(Chat).count() == 1
        assert db.query(Message).count() == 2

    def test_self_message_rejected(self, db, make_user, push):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            chat_utils.send_message(db, push, alice.id, alice.id, "me")
        assert exc.value.status_code == 400

    def test_empty_content_rejected(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        with pytest.raises(HTTPException) as exc:
            chat_utils.send_message(db, push, alice.id, bob.id, "   ")
        assert exc.value.status_code == 400
        assert db.query(Message).count() == 0

    def test_push_failure_keeps_message(self, db, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        chat_utils.send_message(db, ExplodingPush(), alice.id, bob.id, "still here")
        assert db.query(Message).count() == 1
        assert chat_utils.get_unread_message_count(db, bob.id) == 1

    def test_recent_messages_newest_first(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        for text in ("one", "two", "three"):
            chat_utils.send_message(db, push, alice.id, bob.id, text)

        chat_id = db.query(Chat).one().id
        chat = chat_utils.get_chat_by_id(db, chat_id, bob.id)
        assert [m.content for m in chat.recent_messages] == ["three", "two", "one"]
        assert chat.last_message_content == "three"
        assert chat.last_message_sender_id == alice.id

    def test_recent_messages_capped(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        for i in range(chat_utils.RECENT_MESSAGES_LIMIT + 5):
            chat_utils.send_message(db, push, alice.id, bob.id, f"m{i}")

        chat_id = db.query(Chat).one().id
        chat = chat_utils.get_chat_by_id(db, chat_id, alice.id)
        assert len(chat.recent_messages) == chat_utils.RECENT_MESSAGES_LIMIT


class TestChatAccess:

    def test_unknown_chat(self, db, make_user):
        alice = make_user("alice")
        with pytest.raises(HTTPException) as exc:
            chat_utils.get_chat_by_id(db, 12345, alice.id)
        assert exc.value.status_code == 404

    def test_outsider_forbidden(self, db, make_user, push):
        alice, bob, eve = make_user("alice"), make_user("bob"), make_user("eve")
        chat_utils.send_message(db, push, alice.id, bob.id, "private")
        chat_id = db.query(Chat).one().id

        with pytest.raises(HTTPException) as exc:
            chat_utils.get_chat_by_id(db, chat_id, eve.id)
        assert exc.value.status_code == 403

        with pytest.raises(HTTPException) as exc:
            chat_utils.mark_messages_as_read(db, push, chat_id, eve.id)
        assert exc.value.status_code == 403

    def test_user_chats_ordered_by_activity(self, db, make_user, push):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        chat_utils.send_message(db, push, alice.id, bob.id, "to bob")
        chat_utils.send_message(db, push, alice.id, carol.id, "to carol")
        chat_utils.send_message(db, push, bob.id, alice.id, "bob again")

        chats = chat_utils.get_user_chats(db, alice.id)
        assert [c.other_user.username for c in chats] == ["bob", "carol"]
        assert chats[0].has_unread_messages is True
        assert chats[1].has_unread_messages is False
        assert chats[0].recent_messages is None

    def test_user_chats_unknown_user(self, db):
        with pytest.raises(HTTPException) as exc:
            chat_utils.get_user_chats(db, 42)
        assert exc.value.status_code == 404


class TestMarkRead:

    def test_mark_read_flips_and_sends_receipt(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        chat_utils.send_message(db, push, alice.id, bob.id, "hi")
        chat_utils.send_message(db, push, alice.id, bob.id, "you there?")
        chat_id = db.query(Chat).one().id

        assert chat_utils.get_unread_message_count(db, bob.id) == 2
        assert chat_utils.mark_messages_as_read(db, push, chat_id, bob.id) == 2
        assert chat_utils.get_unread_message_count(db, bob.id) == 0
        assert push.sent_to(alice.id, QUEUE_READ_RECEIPTS) == [chat_id]

    def test_mark_read_only_touches_own_messages(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        chat_utils.send_message(db, push, alice.id, bob.id, "hi")
        chat_utils.send_message(db, push, bob.id, alice.id, "hello")
        chat_id = db.query(Chat).one().id

        assert chat_utils.mark_messages_as_read(db, push, chat_id, bob.id) == 1
        assert chat_utils.get_unread_message_count(db, alice.id) == 1

    def test_nothing_to_mark_sends_no_receipt(self, db, make_user, push):
        alice, bob = make_user("alice"), make_user("bob")
        chat = chat_utils.get_or_create_chat(db, alice.id, bob.id)

        assert chat_utils.mark_messages_as_read(db, push, chat.chat_id, bob.id) == 0
        assert push.sent_to(alice.id, QUEUE_READ_RECEIPTS) == []

    def test_unread_count_spans_threads(self, db, make_user, push):
        alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
        chat_utils.send_message(db, push, bob.id, alice.id, "from bob")
        chat_utils.send_message(db, push, carol.id, alice.id, "from carol")
        assert chat_utils.get_unread_message_count(db, alice.id) == 2
