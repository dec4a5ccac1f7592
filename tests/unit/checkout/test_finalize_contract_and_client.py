"""
Unit tests for the finalize-order wire contract and HTTP client.
"""

from decimal import Decimal
from typing import Any

import pytest
import requests
from pydantic import ValidationError

from ragestate.checkout.contract import FinalizeOrderRequest, is_valid_email
from ragestate.checkout.finalize_client import FinalizeOrderClient
from ragestate.exceptions import CheckoutError


class FakeResponse:
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """Records posts and returns a canned response."""

    def __init__(self, response: FakeResponse | Exception) -> None:
        self.response = response
        self.posts: list[dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.posts.append({"url": url, **kwargs})
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestFinalizeOrderRequest:
    """Identity rules and camelCase serialization."""

    def test_for_authenticated_cart(self, cart):
        request = FinalizeOrderRequest.for_cart(
            cart, "pi_1", firebase_id="alice", user_email="alice@example.com"
        )

        wire = request.to_wire()

        assert wire["paymentIntentId"] == "pi_1"
        assert wire["firebaseId"] == "alice"
        assert wire["isGuest"] is False
        assert wire["guestEmail"] is None
        assert wire["cartItems"][0]["productId"] == "tee"
        assert wire["cartItems"][0]["selectedSize"] == "M"
        assert wire["cartItems"][0]["quantity"] == 2

    def test_for_guest_cart_drops_firebase_id(self, cart):
        cart.set_guest_email("guest@example.com")

        request = FinalizeOrderRequest.for_cart(cart, "pi_1", firebase_id="alice")

        assert request.is_guest
        assert request.firebase_id is None
        assert request.guest_email == request.user_email == "guest@example.com"

    def test_accepts_wire_keys(self):
        request = FinalizeOrderRequest.model_validate(
            {
                "paymentIntentId": "pi_1",
                "isGuest": True,
                "guestEmail": "g@example.com",
                "cartItems": [{"productId": "tee", "price": "10.00"}],
            }
        )
        assert request.cart_items[0].price == Decimal("10.00")

    @pytest.mark.parametrize(
        "identity",
        [
            {"isGuest": True},
            {"isGuest": True, "guestEmail": "g@example.com", "firebaseId": "alice"},
            {"isGuest": False},
            {"isGuest": False, "firebaseId": "alice", "guestEmail": "g@example.com"},
        ],
    )
    def test_identity_must_be_exclusive(self, identity):
        with pytest.raises(ValidationError):
            FinalizeOrderRequest.model_validate({"paymentIntentId": "pi_1", **identity})

    def test_email_pattern(self):
        assert is_valid_email("a@b.co")
        assert not is_valid_email("a@b")
        assert not is_valid_email("a b@c.io")
        assert not is_valid_email(None)


class TestFinalizeOrderClient:
    """HTTP behaviour, with a fake requests session."""

    @pytest.fixture
    def request_body(self, cart) -> FinalizeOrderRequest:
        return FinalizeOrderRequest.for_cart(cart, "pi_1", firebase_id="alice")

    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_token(self, request_body):
        session = FakeSession(FakeResponse(200, {"ok": True, "orderNumber": "ORDER-1"}))
        client = FinalizeOrderClient("https://ragestate.com/", session=session)

        result = await client.finalize(request_body, id_token="tok")

        assert result.ok
        assert result.order_number == "ORDER-1"
        post = session.posts[0]
        assert post["url"] == "https://ragestate.com/api/payments/finalize-order"
        assert post["headers"]["Authorization"] == "Bearer tok"
        assert post["json"]["paymentIntentId"] == "pi_1"
        assert post["timeout"] == 15.0

    @pytest.mark.asyncio
    async def test_no_token_no_authorization_header(self, request_body):
        session = FakeSession(FakeResponse(200, {"ok": True}))
        client = FinalizeOrderClient("https://ragestate.com", session=session)

        result = await client.finalize(request_body)

        assert "Authorization" not in session.posts[0]["headers"]
        assert result.order_number is None

    @pytest.mark.asyncio
    async def test_error_status_and_non_json_body(self, request_body):
        session = FakeSession(FakeResponse(502, ValueError("not json")))
        client = FinalizeOrderClient("https://ragestate.com", session=session)

        result = await client.finalize(request_body)

        assert not result.ok
        assert result.status_code == 502
        assert "raw" in result.body

    @pytest.mark.asyncio
    async def test_network_error_raises_checkout_error(self, request_body):
        session = FakeSession(requests.ConnectionError("connection refused"))
        client = FinalizeOrderClient("https://ragestate.com", session=session)

        with pytest.raises(CheckoutError, match="connection refused"):
            await client.finalize(request_body)
