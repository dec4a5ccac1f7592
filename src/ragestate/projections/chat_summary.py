"""
Chat summary projector.

Maintains one summary document per member per chat from the message log:
the last message snapshot, the member's unread count and mute flag. The
summaries are never authoritative; ``rebuild`` recomputes them from the
chat's message stream.
"""

import asyncio
import logging
from datetime import UTC, datetime

from ragestate.config import FanoutConfig, ModerationConfig
from ragestate.events.chat import ChatCreated, MessageCreated, chat_stream
from ragestate.exceptions import DocumentNotFoundError
from ragestate.handlers.decorators import handles
from ragestate.moderation import check_content
from ragestate.observability import Tracer
from ragestate.projections.base import DeclarativeProjection
from ragestate.projections.fanout import FanoutReport, FanoutWorker
from ragestate.readmodels.chat import (
    ChatDocument,
    DmChatSummary,
    EventChatSummary,
    LastMessage,
    chat_document_id,
    summary_id,
)
from ragestate.readmodels.in_memory import InMemoryDocumentRepository
from ragestate.repositories.dlq import DLQRepository, InMemoryDLQRepository
from ragestate.repositories.outbox import FanoutJob, InMemoryFanoutOutbox
from ragestate.retry import ExponentialBackoffRetryPolicy, RetryPolicy
from ragestate.stores.interface import EventLogStore, ReadOptions
from ragestate.users import UserDirectory, get_display_info

logger = logging.getLogger(__name__)

ChatSummaryDocument = DmChatSummary | EventChatSummary


def build_last_message(event: MessageCreated, created_at: datetime) -> LastMessage:
    """Snapshot of a message as shown in chat lists."""
    if event.text:
        text = event.text
    elif event.media_url:
        text = "Sent a video" if event.media_type == "video" else "Sent an image"
    else:
        text = ""
    return LastMessage(
        text=text,
        sender_id=event.sender_id or "",
        sender_name=event.sender_name or "Unknown",
        created_at=created_at,
        type="media" if event.media_url else "text",
    )


class ChatSummaryProjector(DeclarativeProjection):
    """
    Keeps ``users/{uid}/chatSummaries/{chatId}`` in step with the message log.

    New DM chats get a summary for each of their two members. Each new
    message is moderated, recorded as the chat's last message, and fanned
    out to every member's summary through the outbox: recipients get an
    unread increment, the sender does not.

    Example:
        >>> projector = ChatSummaryProjector(store, chats, summaries, users)
        >>> bus.subscribe_all(projector)
        >>> await projector.mark_as_read("u2", "dm_u1_u2")
    """

    def __init__(
        self,
        store: EventLogStore,
        chats: InMemoryDocumentRepository[ChatDocument],
        summaries: InMemoryDocumentRepository[ChatSummaryDocument],
        users: UserDirectory,
        *,
        outbox: InMemoryFanoutOutbox | None = None,
        dlq_repo: DLQRepository | None = None,
        retry_policy: RetryPolicy | None = None,
        moderation: ModerationConfig | None = None,
        fanout: FanoutConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = False,
    ) -> None:
        super().__init__(tracer=tracer, enable_tracing=enable_tracing)
        self._store = store
        self._chats = chats
        self._summaries = summaries
        self._users = users
        self._moderation = moderation or ModerationConfig()
        self._fanout_config = fanout or FanoutConfig()
        self._outbox = outbox or InMemoryFanoutOutbox(enable_tracing=enable_tracing)
        self._dlq_repo = dlq_repo or InMemoryDLQRepository(enable_tracing=enable_tracing)
        self._worker = FanoutWorker(
            self._outbox,
            self._apply_fanout_job,
            dlq_repo=self._dlq_repo,
            projection_name=self._projection_name,
            retry_policy=retry_policy
            or ExponentialBackoffRetryPolicy(self._fanout_config.retry),
            tracer=self._tracer,
        )

    @property
    def outbox(self) -> InMemoryFanoutOutbox:
        return self._outbox

    @property
    def dlq(self) -> DLQRepository:
        return self._dlq_repo

    @handles(ChatCreated)
    async def _on_chat_created(self, event: ChatCreated) -> None:
        if event.chat_type != "dm" or len(event.members) != 2:
            logger.info(
                "Skipping summaries for non-DM or invalid chat %s",
                event.chat_id,
                extra={"chat_id": event.chat_id, "chat_type": event.chat_type},
            )
            return

        chat_doc_id = chat_document_id(event.chat_id)
        if not await self._chats.exists(chat_doc_id):
            await self._chats.save(
                ChatDocument(
                    id=chat_doc_id,
                    chat_id=event.chat_id,
                    type=event.chat_type,
                    members=sorted(event.members),
                )
            )

        user1, user2 = event.members
        info1, info2 = await asyncio.gather(
            get_display_info(self._users, user1),
            get_display_info(self._users, user2),
        )

        batch = self._summaries.batch()
        batch.set(
            DmChatSummary(
                id=summary_id(user1, event.chat_id),
                user_id=user1,
                chat_id=event.chat_id,
                peer_id=user2,
                peer_name=info2.display_name,
                peer_photo=info2.photo_url,
            )
        )
        batch.set(
            DmChatSummary(
                id=summary_id(user2, event.chat_id),
                user_id=user2,
                chat_id=event.chat_id,
                peer_id=user1,
                peer_name=info1.display_name,
                peer_photo=info1.photo_url,
            )
        )
        await batch.commit()

        logger.info(
            "Created chat summaries for %s",
            event.chat_id,
            extra={"chat_id": event.chat_id, "user_id_1": user1, "user_id_2": user2},
        )

    @handles(MessageCreated)
    async def _on_message_created(self, event: MessageCreated) -> None:
        if not event.sender_id:
            logger.warning(
                "Message %s has no sender",
                event.message_id,
                extra={"chat_id": event.chat_id, "message_id": event.message_id},
            )
            return

        stored = await self._store.get_event(event.event_id)
        if stored is None:
            logger.warning(
                "Message %s is not in the log",
                event.message_id,
                extra={"chat_id": event.chat_id, "message_id": event.message_id},
            )
            return

        flagged = False
        if event.text:
            result = check_content(event.text, self._moderation)
            if not result.allowed:
                flagged = True
                await self._store.annotate(
                    event.event_id,
                    flagged=True,
                    flag_reasons=result.reasons,
                    flagged_at=datetime.now(UTC).isoformat(),
                )
                logger.warning(
                    "Message %s flagged for moderation",
                    event.message_id,
                    extra={
                        "chat_id": event.chat_id,
                        "message_id": event.message_id,
                        "sender_id": event.sender_id,
                        "reasons": result.reasons,
                    },
                )

        chat = await self._chats.get(chat_document_id(event.chat_id))
        if chat is None:
            logger.warning("Chat %s not found", event.chat_id, extra={"chat_id": event.chat_id})
            return
        if not chat.members:
            logger.warning(
                "Chat %s has no members",
                event.chat_id,
                extra={"chat_id": event.chat_id},
            )
            return

        last_message = build_last_message(event, stored.stored_at)
        await self._chats.update(chat.id, {"last_message": last_message})

        for member_id in chat.members:
            await self._outbox.enqueue(
                event_id=event.event_id,
                chat_id=event.chat_id,
                recipient_id=member_id,
                sender_id=event.sender_id,
                stream_position=stored.stream_position,
                last_message=last_message.model_dump(mode="json"),
            )

        report = FanoutReport()
        if self._fanout_config.drain_inline:
            report = await self._worker.drain(event_id=event.event_id)

        logger.info(
            "Updated summaries for %s",
            event.chat_id,
            extra={
                "chat_id": event.chat_id,
                "message_id": event.message_id,
                "member_count": len(chat.members),
                "completed": report.completed,
                "skipped": report.skipped,
                "failed": report.failed,
                "flagged": flagged,
            },
        )

    async def _apply_fanout_job(self, job: FanoutJob) -> bool:
        increment = None if job.is_sender else {"unread_count": 1}
        try:
            await self._summaries.update(
                summary_id(job.recipient_id, job.chat_id),
                {"last_message": LastMessage.model_validate(job.last_message)},
                increment=increment,
            )
        except DocumentNotFoundError:
            logger.warning(
                "Summary not found for member %s of chat %s",
                job.recipient_id,
                job.chat_id,
                extra={"chat_id": job.chat_id, "member_id": job.recipient_id},
            )
            return False
        return True

    async def drain_pending(self) -> FanoutReport:
        """Apply every pending fan-out job (when not draining inline)."""
        return await self._worker.drain()

    async def mark_as_read(self, user_id: str, chat_id: str) -> None:
        """
        Reset a member's unread count and record how far they have read.

        A missing summary is ignored.
        """
        position = await self._store.get_stream_position(chat_stream(chat_id))
        try:
            await self._summaries.update(
                summary_id(user_id, chat_id),
                {"unread_count": 0, "read_through": position},
            )
        except DocumentNotFoundError:
            logger.debug(
                "No summary to mark read for %s in %s",
                user_id,
                chat_id,
                extra={"user_id": user_id, "chat_id": chat_id},
            )

    async def toggle_mute(self, user_id: str, chat_id: str, muted: bool) -> ChatSummaryDocument:
        """
        Raises:
            DocumentNotFoundError: If the member has no summary for the chat
        """
        return await self._summaries.update(summary_id(user_id, chat_id), {"muted": muted})

    async def rebuild(self, chat_id: str) -> list[ChatSummaryDocument]:
        """
        Recompute every member's summary for a chat from the message log.

        The unread count becomes the number of messages from other members
        after the member's ``read_through`` position.

        Raises:
            DocumentNotFoundError: If the chat document does not exist
        """
        chat = await self._chats.get(chat_document_id(chat_id))
        if chat is None:
            raise DocumentNotFoundError(chat_document_id(chat_id))

        # (position, stored_at, event) for every message with a sender, oldest first
        messages = [
            (stored.stream_position, stored.stored_at, stored.event)
            for stored in await self._store.read_stream(chat_stream(chat_id), ReadOptions())
            if isinstance(stored.event, MessageCreated) and stored.event.sender_id
        ]
        last_message = None
        if messages:
            _, stored_at, newest = messages[-1]
            last_message = build_last_message(newest, stored_at)
        await self._chats.update(chat.id, {"last_message": last_message})

        rebuilt: list[ChatSummaryDocument] = []
        for member_id in chat.members:
            summary = await self._summaries.get(summary_id(member_id, chat_id))
            if summary is None:
                continue
            unread = sum(
                1
                for position, _, message in messages
                if position > summary.read_through and message.sender_id != member_id
            )
            rebuilt.append(
                await self._summaries.update(
                    summary.id,
                    {"last_message": last_message, "unread_count": unread},
                )
            )

        logger.info(
            "Rebuilt %d summaries for %s",
            len(rebuilt),
            chat_id,
            extra={"chat_id": chat_id, "message_count": len(messages)},
        )
        return rebuilt

    async def reset(self) -> None:
        await self._summaries.clear()
        await self._outbox.clear()


__all__ = ["ChatSummaryProjector", "ChatSummaryDocument", "build_last_message"]
