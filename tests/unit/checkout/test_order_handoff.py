"""
Unit tests for the cart-clear hand-off to the confirmation page.
"""

from decimal import Decimal

from ragestate.checkout.session import (
    LAST_ORDER_KEY,
    PENDING_CART_CLEAR_KEY,
    InMemorySessionStorage,
    LastOrder,
    OrderHandoff,
)


def last_order() -> LastOrder:
    return LastOrder(
        order_number="ORDER-20250314-1234",
        payment_intent_id="pi_1",
        total=Decimal("26.88"),
        item_count=3,
        email="alice@example.com",
    )


class TestOrderHandoff:
    def test_stage_then_complete_clears_cart(self, cart):
        storage = InMemorySessionStorage()
        handoff = OrderHandoff(storage)

        handoff.stage(last_order())
        assert not cart.is_empty

        restored = handoff.complete(cart)

        assert cart.is_empty
        assert restored == last_order()
        assert PENDING_CART_CLEAR_KEY not in storage
        assert LAST_ORDER_KEY not in storage

    def test_complete_without_pending_flag_keeps_cart(self, cart):
        handoff = OrderHandoff(InMemorySessionStorage())

        assert handoff.complete(cart) is None
        assert cart.item_count == 3

    def test_stage_without_snapshot(self, cart):
        storage = InMemorySessionStorage()
        handoff = OrderHandoff(storage)

        handoff.stage(None)

        assert handoff.complete(cart) is None
        assert cart.is_empty

    def test_malformed_snapshot_is_dropped(self, cart):
        storage = InMemorySessionStorage()
        storage.set_item(LAST_ORDER_KEY, "{not json")

        assert OrderHandoff(storage).complete(cart) is None
        assert LAST_ORDER_KEY not in storage
