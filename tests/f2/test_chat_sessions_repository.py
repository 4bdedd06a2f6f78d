"""Tests for the chat sessions repository."""

from tutoring.db import chat_sessions_repository as repo

MESSAGES = [
    {"role": "user", "content": "How do I solve 2x + 3 = 7?"},
    {"role": "assistant", "content": "What could you do to both sides first?"},
]


class TestCreateAndRead:
    def test_create_counts_messages(self, db):
        record = repo.create_session("u1", subject="math", title="Equations", messages=MESSAGES)

        assert record.message_count == 2
        assert record.subject == "math"
        assert record.created_at is not None

    def test_default_subject(self, db):
        assert repo.create_session("u1").subject == "general"

    def test_get_owned_only(self, db):
        record = repo.create_session("u1", messages=MESSAGES)

        assert repo.get_session("u1", record.id).messages == MESSAGES
        assert repo.get_session("u2", record.id) is None

    def test_list_most_recent_first(self, db):
        first = repo.create_session("u1", title="first")
        second = repo.create_session("u1", title="second")
        repo.update_session("u1", first.id, title="first again")

        ids = [s.id for s in repo.list_sessions("u1")]
        assert ids == [first.id, second.id]

    def test_list_scoped_to_user(self, db):
        repo.create_session("u1")
        repo.create_session("u2")

        assert len(repo.list_sessions("u1")) == 1

    def test_to_dict_snake_case(self, db):
        data = repo.create_session("u1", last_message="hi").to_dict()

        assert data["user_id"] == "u1"
        assert data["last_message"] == "hi"
        assert isinstance(data["created_at"], str)


class TestUpdate:
    def test_none_fields_kept(self, db):
        record = repo.create_session("u1", subject="math", title="Keep me", messages=MESSAGES)
        updated = repo.update_session("u1", record.id, last_message="new preview")

        assert updated.title == "Keep me"
        assert updated.last_message == "new preview"
        assert updated.message_count == 2

    def test_messages_update_count(self, db):
        record = repo.create_session("u1", messages=MESSAGES)
        updated = repo.update_session("u1", record.id, messages=MESSAGES + MESSAGES)

        assert updated.message_count == 4

    def test_not_owned(self, db):
        record = repo.create_session("u1")
        assert repo.update_session("u2", record.id, title="hijack") is None
        assert repo.get_session("u1", record.id).title is None


class TestSaveSession:
    def test_without_id_creates(self, db):
        record = repo.save_session("u1", subject="science", messages=MESSAGES)
        assert repo.get_session("u1", record.id) is not None

    def test_with_id_updates(self, db):
        record = repo.save_session("u1", messages=MESSAGES)
        updated = repo.save_session("u1", session_id=record.id, topic="algebra")

        assert updated.id == record.id
        assert len(repo.list_sessions("u1")) == 1

    def test_foreign_id_returns_none(self, db):
        record = repo.save_session("u1")
        assert repo.save_session("u2", session_id=record.id, title="x") is None


class TestDelete:
    def test_delete_one(self, db):
        record = repo.create_session("u1")

        assert repo.delete_session("u1", record.id)
        assert repo.get_session("u1", record.id) is None

    def test_delete_not_owned(self, db):
        record = repo.create_session("u1")

        assert not repo.delete_session("u2", record.id)
        assert repo.get_session("u1", record.id) is not None

    def test_delete_all_only_own(self, db):
        repo.create_session("u1")
        repo.create_session("u1")
        repo.create_session("u2")

        assert repo.delete_all_sessions("u1") == 2
        assert repo.list_sessions("u1") == []
        assert len(repo.list_sessions("u2")) == 1
