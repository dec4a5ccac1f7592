"""
Unit tests for payment intent creation and the in-memory gateway.
"""

from decimal import Decimal

import pytest

from ragestate.checkout.cart import Cart, CartItem
from ragestate.checkout.payments import (
    ConfirmResult,
    GatewayError,
    PaymentIntentCreator,
    payment_reference,
)
from ragestate.exceptions import CheckoutError, MinimumChargeError


class TestPaymentIntentCreator:
    @pytest.mark.asyncio
    async def test_creates_intent_for_cart_total(self, cart, gateway):
        intent = await PaymentIntentCreator(gateway).create(cart, customer_email="a@b.co")

        assert intent.amount == 2688
        assert intent.metadata == {"email": "a@b.co"}
        assert cart.payment_intent == intent.client_secret
        assert cart.checkout_price == Decimal("26.88")
        assert gateway.create_calls == 1

    @pytest.mark.asyncio
    async def test_below_minimum_charge(self, gateway):
        """A 0.28 item totals 0.30 with tax, under the 0.50 minimum."""
        cart = Cart()
        cart.add(CartItem(product_id="sticker", price=Decimal("0.28")))

        with pytest.raises(MinimumChargeError) as exc_info:
            await PaymentIntentCreator(gateway).create(cart)

        assert exc_info.value.amount_cents == 30
        assert "$0.30" in str(exc_info.value)
        assert "$0.50" in str(exc_info.value)
        assert gateway.create_calls == 0
        assert cart.payment_intent == ""


class TestInMemoryPaymentGateway:
    """Scripted confirmations and lookups."""

    @pytest.mark.asyncio
    async def test_confirm_succeeds_by_default(self, gateway):
        intent = await gateway.create_payment_intent(1000)

        result = await gateway.confirm_payment(intent.client_secret)

        assert result.error is None
        assert result.payment_intent.status == "succeeded"
        assert gateway.get(intent.id).status == "succeeded"

    @pytest.mark.asyncio
    async def test_scripted_error(self, gateway):
        intent = await gateway.create_payment_intent(1000)
        gateway.script_confirm(
            ConfirmResult(error=GatewayError(type="card_error", message="Your card was declined."))
        )

        result = await gateway.confirm_payment(intent.client_secret)

        assert result.error.type == "card_error"
        assert gateway.get(intent.id).status == "requires_payment_method"

    @pytest.mark.asyncio
    async def test_retrieve_unknown_secret(self, gateway):
        with pytest.raises(CheckoutError):
            await gateway.retrieve_payment_intent("pi_nope_secret")

    def test_payment_reference(self):
        assert payment_reference("pi_3Nabcdefgh12345678") == "12345678"
