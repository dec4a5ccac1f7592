"""
Payment gateway contract and payment intent creation.

The gateway mirrors the three calls the checkout needs from the payment
processor: create an intent, confirm it, and retrieve it by client secret.
Confirmation reports failures as a ``GatewayError`` value rather than an
exception, because several error types are expected outcomes.
"""

import logging
from collections import deque
from typing import Any, Literal, Protocol
from uuid import uuid4

from pydantic import BaseModel, Field

from ragestate.checkout.amounts import to_cents
from ragestate.checkout.cart import Cart
from ragestate.config import CheckoutConfig
from ragestate.exceptions import CheckoutError, MinimumChargeError

logger = logging.getLogger(__name__)

PaymentIntentStatus = Literal[
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
    "processing",
    "succeeded",
    "canceled",
]

GatewayErrorType = Literal[
    "card_error",
    "validation_error",
    "invalid_request_error",
    "api_error",
]


class PaymentIntent(BaseModel):
    id: str
    client_secret: str
    amount: int = Field(ge=0, description="Amount in cents")
    currency: str = "usd"
    status: PaymentIntentStatus = "requires_payment_method"
    metadata: dict[str, Any] = Field(default_factory=dict)


class GatewayError(BaseModel):
    """Error returned by a confirm call."""

    type: GatewayErrorType
    code: str | None = None
    message: str = ""


class ConfirmResult(BaseModel):
    payment_intent: PaymentIntent | None = None
    error: GatewayError | None = None


class PaymentGateway(Protocol):
    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str = "usd",
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent: ...

    async def confirm_payment(self, client_secret: str) -> ConfirmResult: ...

    async def retrieve_payment_intent(self, client_secret: str) -> PaymentIntent: ...


def payment_reference(intent_id: str) -> str:
    """Short form of a payment intent id quoted in support messages."""
    return intent_id[-8:]


class InMemoryPaymentGateway:
    """
    Scriptable gateway for tests and local runs.

    Confirmations succeed unless a result was queued with ``script_confirm``.

    Example:
        >>> gateway = InMemoryPaymentGateway()
        >>> gateway.script_confirm(ConfirmResult(error=GatewayError(type="card_error", message="Declined")))
    """

    def __init__(self) -> None:
        self._intents: dict[str, PaymentIntent] = {}
        self._confirm_script: deque[ConfirmResult] = deque()
        self.create_calls = 0
        self.confirm_calls = 0
        self.retrieve_calls = 0

    def script_confirm(self, result: ConfirmResult) -> None:
        self._confirm_script.append(result)

    def set_status(self, intent_id: str, status: PaymentIntentStatus) -> PaymentIntent:
        intent = self._intents[intent_id].model_copy(update={"status": status})
        self._intents[intent_id] = intent
        return intent

    def get(self, intent_id: str) -> PaymentIntent | None:
        return self._intents.get(intent_id)

    async def create_payment_intent(
        self,
        amount_cents: int,
        currency: str = "usd",
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent:
        self.create_calls += 1
        intent_id = f"pi_{uuid4().hex[:24]}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:16]}",
            amount=amount_cents,
            currency=currency,
            metadata=dict(metadata or {}),
        )
        self._intents[intent_id] = intent
        return intent

    async def confirm_payment(self, client_secret: str) -> ConfirmResult:
        self.confirm_calls += 1
        if self._confirm_script:
            return self._confirm_script.popleft()
        intent = self._by_secret(client_secret)
        return ConfirmResult(payment_intent=self.set_status(intent.id, "succeeded"))

    async def retrieve_payment_intent(self, client_secret: str) -> PaymentIntent:
        self.retrieve_calls += 1
        return self._by_secret(client_secret)

    def _by_secret(self, client_secret: str) -> PaymentIntent:
        for intent in self._intents.values():
            if intent.client_secret == client_secret:
                return intent
        raise CheckoutError(f"Unknown payment intent client secret: {client_secret}")


class PaymentIntentCreator:
    """Creates the payment intent for a cart, enforcing the minimum charge."""

    def __init__(self, gateway: PaymentGateway, config: CheckoutConfig | None = None) -> None:
        self._gateway = gateway
        self._config = config or CheckoutConfig()

    async def create(
        self,
        cart: Cart,
        *,
        customer_email: str | None = None,
    ) -> PaymentIntent:
        """
        Create an intent for the cart total and record it on the cart.

        Raises:
            MinimumChargeError: If the total is below the minimum charge;
                the gateway is not called
        """
        totals = cart.totals(self._config)
        amount_cents = to_cents(totals.total)
        if amount_cents < self._config.minimum_charge_cents:
            logger.info(
                "Cart total %d cents is below the minimum charge",
                amount_cents,
                extra={
                    "amount_cents": amount_cents,
                    "minimum_cents": self._config.minimum_charge_cents,
                },
            )
            raise MinimumChargeError(amount_cents, self._config.minimum_charge_cents)

        metadata = {"email": customer_email} if customer_email else {}
        intent = await self._gateway.create_payment_intent(amount_cents, "usd", metadata)
        cart.payment_intent = intent.client_secret
        cart.checkout_price = totals.total
        logger.info(
            "Created payment intent %s",
            intent.id,
            extra={"payment_intent_id": intent.id, "amount_cents": amount_cents},
        )
        return intent


__all__ = [
    "PaymentIntentStatus",
    "GatewayErrorType",
    "PaymentIntent",
    "GatewayError",
    "ConfirmResult",
    "PaymentGateway",
    "payment_reference",
    "InMemoryPaymentGateway",
    "PaymentIntentCreator",
]
