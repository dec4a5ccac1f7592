"""
Merging optimistic local items with authoritative ones.

An optimistic item carries the id its authoritative copy will have
(``client_key``) and is shown under ``temp-<client_key>`` until that copy
arrives. Items without a client key fall back to matching on
``author|trimmed content``. Finally the merged list is de-duplicated by id.
"""

from collections.abc import Iterable
from typing import Protocol, TypeVar

TEMP_PREFIX = "temp-"


class Reconcilable(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def client_key(self) -> str | None: ...

    @property
    def author_id(self) -> str | None: ...

    @property
    def content(self) -> str | None: ...


T = TypeVar("T", bound=Reconcilable)


def temp_id(client_key: str) -> str:
    return f"{TEMP_PREFIX}{client_key}"


def is_temp_id(item_id: str) -> bool:
    return item_id.startswith(TEMP_PREFIX)


def content_signature(author_id: str | None, content: str | None) -> str:
    return f"{author_id or ''}|{(content or '').strip()}"


def pending_optimistic(authoritative: Iterable[T], optimistic: Iterable[T]) -> list[T]:
    """Optimistic items whose authoritative copy has not arrived yet."""
    real = list(authoritative)
    real_keys = {item.client_key or item.id for item in real}
    real_signatures = {content_signature(item.author_id, item.content) for item in real}

    pending: list[T] = []
    for item in optimistic:
        if item.client_key is not None:
            if item.client_key in real_keys:
                continue
        elif content_signature(item.author_id, item.content) in real_signatures:
            continue
        pending.append(item)
    return pending


def dedupe_by_id(items: Iterable[T]) -> list[T]:
    """Drop repeated ids, keeping the first occurrence and the order."""
    seen: set[str] = set()
    result: list[T] = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return result


def reconcile(authoritative: Iterable[T], optimistic: Iterable[T]) -> list[T]:
    """Authoritative items followed by still-pending optimistic ones."""
    real = list(authoritative)
    return dedupe_by_id([*real, *pending_optimistic(real, optimistic)])


__all__ = [
    "TEMP_PREFIX",
    "Reconcilable",
    "temp_id",
    "is_temp_id",
    "content_signature",
    "pending_optimistic",
    "dedupe_by_id",
    "reconcile",
]
