"""Unit tests for sessions and transcripts."""

from datetime import datetime, timedelta

import pytest

from convoflow.runtime.session import Message, MessageRole, Session, SessionStatus, Transcript


class TestMessage:
    """Tests for Message."""

    def test_message_is_immutable(self):
        message = Message(role=MessageRole.BOT, content="Hi")

        with pytest.raises(AttributeError):
            message.content = "Bye"

    def test_ids_are_unique(self):
        first = Message(role=MessageRole.USER, content="a")
        second = Message(role=MessageRole.USER, content="a")

        assert first.id != second.id
        assert first.id.startswith("msg_")

    def test_to_dict(self):
        message = Message(role=MessageRole.SYSTEM, content="→ Start", node_id="start")

        data = message.to_dict()

        assert data["role"] == "system"
        assert data["content"] == "→ Start"
        assert data["node_id"] == "start"
        assert str(message) == "system: → Start"


class TestTranscript:
    """Tests for Transcript."""

    def test_append_and_read(self):
        transcript = Transcript()
        transcript.append(Message(role=MessageRole.BOT, content="one"))
        transcript.append(Message(role=MessageRole.USER, content="two"))

        assert len(transcript) == 2
        assert transcript[1].content == "two"
        assert [m.content for m in transcript] == ["one", "two"]
        assert [m.content for m in transcript.by_role(MessageRole.USER)] == ["two"]

    def test_messages_is_a_copy(self):
        """Test callers cannot rewrite history through the messages view."""
        transcript = Transcript()
        transcript.append(Message(role=MessageRole.BOT, content="one"))

        transcript.messages.clear()

        assert len(transcript) == 1

    def test_subscribe_and_unsubscribe(self):
        transcript = Transcript()
        seen = []
        unsubscribe = transcript.subscribe(seen.append)

        transcript.append(Message(role=MessageRole.BOT, content="one"))
        unsubscribe()
        transcript.append(Message(role=MessageRole.BOT, content="two"))

        assert [m.content for m in seen] == ["one"]


class TestSession:
    """Tests for Session."""

    def test_initial_state(self):
        session = Session()

        assert session.status == SessionStatus.IDLE
        assert session.pending_input is False
        assert session.get_duration_seconds() == 0.0

    def test_move_to_records_visits(self):
        session = Session()
        session.move_to("a")
        session.move_to("b")

        assert session.current_node_id == "b"
        assert session.visited_nodes == ["a", "b"]

    def test_complete_and_duration(self):
        session = Session(started_at=datetime.utcnow() - timedelta(seconds=5))

        session.complete()

        assert session.status == SessionStatus.COMPLETED
        assert session.get_duration_seconds() >= 5

    def test_to_dict(self):
        session = Session(flow_id="f", status=SessionStatus.WAITING_FOR_INPUT)

        data = session.to_dict()

        assert data["status"] == "waiting_for_input"
        assert data["pending_input"] is True
        assert data["transcript"] == []
