"""
Client-side views over the event log and read models.

Each view is a small state machine fed by live queries or repository
watches. Views merge the user's optimistic writes with the authoritative
data as it arrives, and notify the caller through ``on_change``.
"""

from ragestate.client.chat import (
    ChatMessage,
    ChatSession,
    ChatSessionState,
    MediaAttachment,
    MediaUploader,
    MessageStatus,
    SessionUser,
)
from ragestate.client.chat_list import ChatListState, ChatListView, get_dm_chat_id, start_dm
from ragestate.client.comments import CommentThread, CommentView
from ragestate.client.feed import FeedCursor, FeedView
from ragestate.client.reconcile import (
    TEMP_PREFIX,
    Reconcilable,
    content_signature,
    dedupe_by_id,
    is_temp_id,
    pending_optimistic,
    reconcile,
    temp_id,
)

__all__ = [
    # Chat
    "ChatSession",
    "ChatSessionState",
    "ChatMessage",
    "MessageStatus",
    "SessionUser",
    "MediaAttachment",
    "MediaUploader",
    # Chat list
    "ChatListView",
    "ChatListState",
    "get_dm_chat_id",
    "start_dm",
    # Feed
    "FeedView",
    "FeedCursor",
    "CommentThread",
    "CommentView",
    # Reconciliation
    "TEMP_PREFIX",
    "Reconcilable",
    "temp_id",
    "is_temp_id",
    "content_signature",
    "pending_optimistic",
    "dedupe_by_id",
    "reconcile",
]
