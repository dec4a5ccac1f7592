"""
Hand-off of a finished order to the confirmation page.

The checkout never clears the cart itself. It stages a ``pendingCartClear``
flag and a ``lastOrder`` snapshot in session storage, and the confirmation
page clears the cart when it loads.
"""

import logging
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, ValidationError

from ragestate.checkout.cart import Cart
from ragestate.serialization import json_dumps, json_loads

logger = logging.getLogger(__name__)

PENDING_CART_CLEAR_KEY = "pendingCartClear"
LAST_ORDER_KEY = "lastOrder"


class SessionStorage(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemorySessionStorage:
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items


class LastOrder(BaseModel):
    """What the confirmation page shows about the order just placed."""

    order_number: str | None = None
    payment_intent_id: str
    total: Decimal
    item_count: int
    email: str | None = None
    is_guest: bool = False


class OrderHandoff:
    def __init__(self, storage: SessionStorage) -> None:
        self._storage = storage

    def stage(self, last_order: LastOrder | None) -> None:
        """Record that the cart must be cleared on the next page."""
        self._storage.set_item(PENDING_CART_CLEAR_KEY, "true")
        if last_order is not None:
            self._storage.set_item(LAST_ORDER_KEY, json_dumps(last_order))

    def complete(self, cart: Cart) -> LastOrder | None:
        """
        Run on the confirmation page: clear the cart if a clear is pending.

        Both keys are consumed. Returns the staged order snapshot, if any.
        """
        if self._storage.get_item(PENDING_CART_CLEAR_KEY) == "true":
            cart.clear()
            self._storage.remove_item(PENDING_CART_CLEAR_KEY)

        raw = self._storage.get_item(LAST_ORDER_KEY)
        if raw is None:
            return None
        self._storage.remove_item(LAST_ORDER_KEY)
        try:
            return LastOrder.model_validate(json_loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("Failed to parse staged order: %s", e)
            return None


__all__ = [
    "PENDING_CART_CLEAR_KEY",
    "LAST_ORDER_KEY",
    "SessionStorage",
    "InMemorySessionStorage",
    "LastOrder",
    "OrderHandoff",
]
