"""
In-memory document repository for read models.

Stores documents by path and hands out copies, so callers never mutate
stored state by accident. Writes made through ``update`` and ``batch`` are
applied under the repository lock; counter increments are therefore
atomic with respect to concurrent writers.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, Generic, Self, TypeVar

from ragestate.exceptions import DocumentNotFoundError
from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION,
    ATTR_DB_SYSTEM,
    ATTR_DOCUMENT_ID,
    ATTR_LIMIT,
)
from ragestate.readmodels.base import ReadModel

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=ReadModel)

DocumentListener = Callable[[list[str]], Awaitable[None]]
"""Async callback receiving the ids of documents that changed."""


def _apply_update(
    existing: TModel,
    changes: dict[str, Any] | None,
    increment: dict[str, int] | None,
    now: datetime,
) -> TModel:
    data = existing.model_dump()
    data.update(changes or {})
    for field_name, delta in (increment or {}).items():
        # counters never go negative
        data[field_name] = max(0, int(data.get(field_name) or 0) + delta)
    data["version"] = existing.version + 1
    data["updated_at"] = now
    return type(existing).model_validate(data)


class WriteBatch(Generic[TModel]):
    """
    A set of writes committed atomically.

    If any update in the batch targets a missing document, ``commit``
    raises ``DocumentNotFoundError`` and none of the writes are applied.

    Example:
        >>> batch = summaries.batch()
        >>> batch.set(summary_a).set(summary_b)
        >>> await batch.commit()
    """

    def __init__(self, repository: "InMemoryDocumentRepository[TModel]") -> None:
        self._repository = repository
        self._ops: list[tuple[str, Any]] = []
        self._committed = False

    def set(self, model: TModel) -> Self:
        self._ops.append(("set", model.model_copy(deep=True)))
        return self

    def update(
        self,
        document_id: str,
        changes: dict[str, Any] | None = None,
        *,
        increment: dict[str, int] | None = None,
    ) -> Self:
        self._ops.append(("update", (document_id, changes, increment)))
        return self

    def delete(self, document_id: str) -> Self:
        self._ops.append(("delete", document_id))
        return self

    async def commit(self) -> None:
        if self._committed:
            raise RuntimeError("WriteBatch has already been committed")
        self._committed = True
        await self._repository._commit(self._ops)

    def __len__(self) -> int:
        return len(self._ops)


class InMemoryDocumentRepository(Generic[TModel]):
    """
    Document store for one read model collection.

    Example:
        >>> posts = InMemoryDocumentRepository[PostDocument]("posts")
        >>> await posts.save(PostDocument(id="posts/p1", post_id="p1", ...))
        >>> await posts.update("posts/p1", increment={"like_count": 1})
    """

    def __init__(
        self,
        collection: str,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            collection: Collection name, used in logs and span attributes
            tracer: Optional custom Tracer instance
            enable_tracing: Whether to emit OpenTelemetry spans
        """
        self._collection = collection
        self._documents: dict[str, TModel] = {}
        self._listeners: list[DocumentListener] = []
        self._lock = asyncio.Lock()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    @property
    def collection(self) -> str:
        return self._collection

    def _span_attributes(self, **extra: Any) -> dict[str, Any]:
        return {ATTR_COLLECTION: self._collection, ATTR_DB_SYSTEM: "memory", **extra}

    async def get(self, document_id: str) -> TModel | None:
        with self._tracer.span(
            "ragestate.document.get",
            self._span_attributes(**{ATTR_DOCUMENT_ID: document_id}),
        ):
            async with self._lock:
                model = self._documents.get(document_id)
                return model.model_copy(deep=True) if model is not None else None

    async def exists(self, document_id: str) -> bool:
        async with self._lock:
            return document_id in self._documents

    async def save(self, model: TModel) -> TModel:
        """
        Create or overwrite a document.

        Overwrites keep the original ``created_at`` and bump ``version``.
        """
        with self._tracer.span(
            "ragestate.document.save",
            self._span_attributes(**{ATTR_DOCUMENT_ID: model.id}),
        ):
            async with self._lock:
                stored = self._put(model, datetime.now(UTC))
            await self._notify([model.id])
            return stored.model_copy(deep=True)

    async def update(
        self,
        document_id: str,
        changes: dict[str, Any] | None = None,
        *,
        increment: dict[str, int] | None = None,
    ) -> TModel:
        """
        Merge field changes into an existing document.

        Args:
            document_id: Path of the document to update
            changes: Field values to set
            increment: Integer deltas applied to counter fields, floored at 0

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        with self._tracer.span(
            "ragestate.document.update",
            self._span_attributes(**{ATTR_DOCUMENT_ID: document_id}),
        ):
            async with self._lock:
                existing = self._documents.get(document_id)
                if existing is None:
                    raise DocumentNotFoundError(document_id)
                updated = _apply_update(existing, changes, increment, datetime.now(UTC))
                self._documents[document_id] = updated
            await self._notify([document_id])
            return updated.model_copy(deep=True)

    async def delete(self, document_id: str) -> bool:
        with self._tracer.span(
            "ragestate.document.delete",
            self._span_attributes(**{ATTR_DOCUMENT_ID: document_id}),
        ):
            async with self._lock:
                removed = self._documents.pop(document_id, None) is not None
            if removed:
                await self._notify([document_id])
            return removed

    async def find(
        self,
        predicate: Callable[[TModel], bool] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[TModel]:
        """
        Query documents in this collection.

        Args:
            predicate: Filter; all documents match when omitted
            order_by: Field name to sort by
            descending: Sort direction
            limit: Maximum number of documents returned
        """
        with self._tracer.span(
            "ragestate.document.find",
            self._span_attributes(**{ATTR_LIMIT: limit or 0}),
        ):
            async with self._lock:
                matches = [
                    m for m in self._documents.values() if predicate is None or predicate(m)
                ]
            if order_by is not None:
                matches.sort(key=lambda m: getattr(m, order_by), reverse=descending)
            if limit is not None:
                matches = matches[:limit]
            return [m.model_copy(deep=True) for m in matches]

    def batch(self) -> WriteBatch[TModel]:
        return WriteBatch(self)

    async def _commit(self, ops: list[tuple[str, Any]]) -> None:
        with self._tracer.span(
            "ragestate.document.batch_commit",
            self._span_attributes(**{ATTR_BATCH_SIZE: len(ops)}),
        ):
            changed: list[str] = []
            async with self._lock:
                staged = dict(self._documents)
                now = datetime.now(UTC)
                for kind, payload in ops:
                    if kind == "set":
                        staged[payload.id] = self._prepare(payload, staged.get(payload.id), now)
                        changed.append(payload.id)
                    elif kind == "update":
                        document_id, changes, increment = payload
                        existing = staged.get(document_id)
                        if existing is None:
                            raise DocumentNotFoundError(document_id)
                        staged[document_id] = _apply_update(existing, changes, increment, now)
                        changed.append(document_id)
                    elif kind == "delete":
                        if staged.pop(payload, None) is not None:
                            changed.append(payload)
                self._documents = staged

            logger.debug(
                "Committed batch of %d write(s) to %s",
                len(ops),
                self._collection,
                extra={"collection": self._collection, "batch_size": len(ops)},
            )
            if changed:
                await self._notify(changed)

    def _prepare(self, model: TModel, existing: TModel | None, now: datetime) -> TModel:
        model = model.model_copy(deep=True)
        if existing is not None:
            model.created_at = existing.created_at
            model.version = existing.version + 1
        model.updated_at = now
        return model

    def _put(self, model: TModel, now: datetime) -> TModel:
        stored = self._prepare(model, self._documents.get(model.id), now)
        self._documents[model.id] = stored
        return stored

    def watch(self, listener: DocumentListener) -> Callable[[], None]:
        """
        Register a listener called after every committed write.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self, document_ids: list[str]) -> None:
        listeners = list(self._listeners)
        if not listeners:
            return
        results = await asyncio.gather(
            *(listener(document_ids) for listener in listeners),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "Document listener failed for %s: %s",
                    self._collection,
                    result,
                    extra={"collection": self._collection, "error": str(result)},
                )

    async def count(self) -> int:
        async with self._lock:
            return len(self._documents)

    async def clear(self) -> None:
        async with self._lock:
            self._documents.clear()

    def __repr__(self) -> str:
        return f"InMemoryDocumentRepository({self._collection!r}, documents={len(self._documents)})"


__all__ = ["InMemoryDocumentRepository", "WriteBatch", "DocumentListener"]
