"""
Unit tests for log events and the event type registry.
"""

from uuid import UUID

import pytest
from pydantic import ValidationError

from ragestate.events import (
    ChatCreated,
    CommentCreated,
    EventRegistry,
    EventTypeNotFoundError,
    LogEvent,
    MessageCreated,
    PostCreated,
    PostLiked,
    get_event_class,
)
from ragestate.events.registry import DuplicateEventTypeError


class TestDerivedFields:
    """event_type and stream_id are filled in from the class."""

    def test_event_type_defaults_to_class_name(self):
        event = PostLiked(post_id="p1", user_id="alice")
        assert event.event_type == "PostLiked"

    def test_stream_ids(self):
        assert ChatCreated(chat_id="dm_a_b").stream_id == "chats"
        assert MessageCreated(chat_id="dm_a_b").stream_id == "chats/dm_a_b/messages"
        assert PostCreated(user_id="alice").stream_id == "posts"
        assert PostLiked(post_id="p1", user_id="a").stream_id == "posts/p1/likes"
        assert (
            CommentCreated(post_id="p1", user_id="a", content="x").stream_id
            == "posts/p1/comments"
        )

    def test_ids_double_as_document_ids(self):
        """Message, post and comment ids are the string form of event_id."""
        event = MessageCreated(chat_id="dm_a_b", text="hi")
        assert event.message_id == str(event.event_id)
        post = PostCreated(user_id="alice")
        assert UUID(post.post_id) == post.event_id

    def test_events_are_frozen(self):
        event = MessageCreated(chat_id="dm_a_b", text="hi")
        with pytest.raises(ValidationError):
            event.text = "edited"

    def test_to_dict_and_back(self):
        event = ChatCreated(chat_id="dm_a_b", members=["a", "b"], actor_id="a")
        assert ChatCreated.from_dict(event.to_dict()) == event

    def test_with_metadata(self):
        event = PostLiked(post_id="p1", user_id="alice").with_metadata(source="web")
        assert event.metadata == {"source": "web"}

    def test_unknown_media_type_rejected(self):
        with pytest.raises(ValidationError):
            MessageCreated(chat_id="dm_a_b", media_url="u", media_type="audio")


class TestEventRegistry:
    """Tests for EventRegistry."""

    def test_built_in_events_are_registered(self):
        assert get_event_class("MessageCreated") is MessageCreated
        assert get_event_class("CommentCreated") is CommentCreated

    def test_unknown_type_raises(self):
        registry = EventRegistry()
        with pytest.raises(EventTypeNotFoundError):
            registry.get("Nope")
        assert registry.get_or_none("Nope") is None

    def test_registering_same_class_twice_is_noop(self):
        registry = EventRegistry()
        registry.register(PostLiked)
        registry.register(PostLiked)
        assert len(registry) == 1
        assert "PostLiked" in registry

    def test_duplicate_name_for_different_class_raises(self):
        registry = EventRegistry()

        class Liked(LogEvent):
            post_id: str

        registry.register(PostLiked, "Liked")
        with pytest.raises(DuplicateEventTypeError):
            registry.register(Liked)
