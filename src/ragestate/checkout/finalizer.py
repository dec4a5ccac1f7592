"""
Client-side checkout state machine.

Payment confirmation and order finalization are two phases::

    idle -> confirming -> {succeeded, requires_action, failed}
    succeeded -> finalizing -> {ok, degraded, failed}

A successful charge is never reversed here. When the order cannot be
recorded the user gets a support message quoting the payment reference,
and the cart is left untouched.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from pydantic import ValidationError as PydanticValidationError

from ragestate.checkout.cart import Cart
from ragestate.checkout.contract import FinalizeOrderRequest, is_valid_email
from ragestate.checkout.finalize_client import FinalizeResult
from ragestate.checkout.payments import PaymentGateway, PaymentIntent, payment_reference
from ragestate.checkout.session import LastOrder, OrderHandoff
from ragestate.config import CheckoutConfig
from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import ATTR_ORDER_NUMBER, ATTR_PAYMENT_INTENT_ID
from ragestate.readmodels.orders import AddressDetails

logger = logging.getLogger(__name__)

CheckoutState = Literal[
    "idle",
    "confirming",
    "succeeded",
    "requires_action",
    "failed",
    "finalizing",
    "ok",
    "degraded",
]

MSG_SUCCEEDED = "Payment succeeded!"
MSG_PROCESSING = "Your payment is processing."
MSG_REQUIRES_ACTION = "Additional authentication is required to complete your payment."
MSG_NOT_SUCCESSFUL = "Your payment was not successful, please try again."
MSG_SOMETHING_WRONG = "Something went wrong."
MSG_UNEXPECTED = "An unexpected error occurred."
MSG_PENDING_CONFIRMATION = (
    "Payment succeeded! Your order is being confirmed and a receipt will be emailed to you."
)

_BUSY_STATES = frozenset({"confirming", "finalizing"})


class OrderFinalizer(Protocol):
    async def finalize(
        self,
        request: FinalizeOrderRequest,
        *,
        id_token: str | None = None,
    ) -> FinalizeResult: ...


@dataclass(frozen=True)
class CheckoutIdentity:
    """Who is paying. Guest checkouts carry their email on the cart instead."""

    firebase_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None
    id_token: str | None = None


@dataclass(frozen=True)
class FinalizeOutcome:
    state: CheckoutState
    message: str
    order_number: str | None = None
    redirect_to: str | None = None


class CheckoutFinalizer:
    """
    Drives one checkout from card confirmation to the confirmation page.

    Example:
        >>> finalizer = CheckoutFinalizer(gateway, client, handoff, cart, identity=identity)
        >>> await finalizer.submit()
        'ok'
        >>> finalizer.redirect_to
        '/order-confirmed/ORDER-20250101-1234'
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        client: OrderFinalizer,
        handoff: OrderHandoff,
        cart: Cart,
        *,
        identity: CheckoutIdentity | None = None,
        address_details: AddressDetails | None = None,
        applied_promo_code: str | None = None,
        config: CheckoutConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = False,
    ) -> None:
        self._gateway = gateway
        self._client = client
        self._handoff = handoff
        self._cart = cart
        self._identity = identity or CheckoutIdentity()
        self._address_details = address_details
        self._applied_promo_code = applied_promo_code
        self._config = config or CheckoutConfig()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self._state: CheckoutState = "idle"
        self._message: str | None = None
        self._order_number: str | None = None
        self._redirect_to: str | None = None
        self._in_flight: dict[str, asyncio.Task[FinalizeOutcome]] = {}

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def message(self) -> str | None:
        return self._message

    @property
    def order_number(self) -> str | None:
        return self._order_number

    @property
    def redirect_to(self) -> str | None:
        return self._redirect_to

    @property
    def busy(self) -> bool:
        return self._state in _BUSY_STATES

    def set_identity(self, identity: CheckoutIdentity) -> None:
        self._identity = identity

    def set_address(self, address_details: AddressDetails | None) -> None:
        self._address_details = address_details

    def _set(self, state: CheckoutState, message: str | None) -> CheckoutState:
        self._state = state
        self._message = message
        return state

    def support_message(self, intent_id: str) -> str:
        return (
            "Your payment went through, but we could not complete your order. "
            f"Please contact {self._config.support_email} with payment reference "
            f"{payment_reference(intent_id)}."
        )

    async def submit(self) -> CheckoutState:
        """Confirm the cart's payment intent and finalize on success."""
        if self.busy:
            logger.debug("Ignoring submit while %s", self._state)
            return self._state

        client_secret = self._cart.payment_intent
        self._set("confirming", None)
        try:
            result = await self._gateway.confirm_payment(client_secret)
        except Exception as e:
            logger.error("Payment confirmation failed: %s", e, exc_info=True)
            return self._set("failed", MSG_UNEXPECTED)

        error = result.error
        if error is not None:
            if error.code == "payment_intent_unexpected_state":
                return await self._recover_unexpected_state(client_secret)
            if error.type in ("card_error", "validation_error"):
                return self._set("failed", error.message)
            logger.warning(
                "Payment confirmation returned %s",
                error.type,
                extra={"error_type": error.type, "error_code": error.code},
            )
            return self._set("failed", MSG_UNEXPECTED)

        intent = result.payment_intent
        if intent is None:
            return self._set("failed", MSG_UNEXPECTED)
        if intent.status == "succeeded":
            self._set("succeeded", MSG_SUCCEEDED)
            return (await self.finalize(intent)).state
        if intent.status == "processing":
            return self._set("requires_action", MSG_PROCESSING)
        if intent.status == "requires_action":
            return self._set("requires_action", MSG_REQUIRES_ACTION)
        return self._set("failed", MSG_SOMETHING_WRONG)

    async def _recover_unexpected_state(self, client_secret: str) -> CheckoutState:
        try:
            intent = await self._gateway.retrieve_payment_intent(client_secret)
        except Exception as e:
            logger.error("Failed to re-fetch payment intent: %s", e, exc_info=True)
            return self._set("failed", MSG_UNEXPECTED)

        logger.info(
            "Recovered payment intent %s in state %s",
            intent.id,
            intent.status,
            extra={"payment_intent_id": intent.id, "status": intent.status},
        )
        if intent.status == "succeeded":
            self._set("succeeded", MSG_SUCCEEDED)
            return (await self.finalize(intent)).state
        return self._set("failed", MSG_UNEXPECTED)

    async def resume(self, client_secret: str) -> CheckoutState:
        """Pick up a checkout after a redirect back from the payment processor."""
        if self.busy:
            return self._state
        try:
            intent = await self._gateway.retrieve_payment_intent(client_secret)
        except Exception as e:
            logger.error("Failed to retrieve payment intent: %s", e, exc_info=True)
            return self._set("failed", MSG_SOMETHING_WRONG)

        if intent.status == "succeeded":
            self._set("succeeded", MSG_SUCCEEDED)
            return (await self.finalize(intent)).state
        if intent.status == "processing":
            return self._set("requires_action", MSG_PROCESSING)
        if intent.status == "requires_payment_method":
            return self._set("failed", MSG_NOT_SUCCESSFUL)
        return self._set("failed", MSG_SOMETHING_WRONG)

    async def finalize(self, intent: PaymentIntent) -> FinalizeOutcome:
        """
        Record the order for a succeeded payment intent.

        Concurrent calls for the same intent share one request.
        """
        task = self._in_flight.get(intent.id)
        if task is None:
            task = asyncio.create_task(self._finalize(intent))
            self._in_flight[intent.id] = task
            task.add_done_callback(lambda _: self._in_flight.pop(intent.id, None))
        outcome = await asyncio.shield(task)
        self._state = outcome.state
        self._message = outcome.message
        self._order_number = outcome.order_number
        self._redirect_to = outcome.redirect_to
        return outcome

    async def _finalize(self, intent: PaymentIntent) -> FinalizeOutcome:
        with self._tracer.span(
            "ragestate.checkout.finalize",
            {ATTR_PAYMENT_INTENT_ID: intent.id},
        ) as span:
            self._state = "finalizing"
            support = self.support_message(intent.id)
            is_guest = self._cart.checkout_mode == "guest"

            if is_guest and not is_valid_email(self._cart.guest_email):
                logger.error(
                    "Guest checkout succeeded without a valid email",
                    extra={"payment_intent_id": intent.id},
                )
                return FinalizeOutcome("degraded", support)
            if not is_guest and not self._identity.firebase_id:
                logger.error(
                    "Checkout succeeded without a signed-in user",
                    extra={"payment_intent_id": intent.id},
                )
                return FinalizeOutcome("degraded", support)

            try:
                request = FinalizeOrderRequest.for_cart(
                    self._cart,
                    intent.id,
                    firebase_id=self._identity.firebase_id,
                    user_email=self._identity.user_email,
                    user_name=self._identity.user_name,
                    address_details=self._address_details,
                    applied_promo_code=self._applied_promo_code,
                )
            except PydanticValidationError as e:
                logger.error(
                    "Invalid finalize-order request: %s",
                    e,
                    extra={"payment_intent_id": intent.id},
                )
                return FinalizeOutcome("degraded", support)

            try:
                result = await self._client.finalize(
                    request,
                    id_token=None if is_guest else self._identity.id_token,
                )
            except Exception as e:
                logger.error(
                    "Finalize-order call failed: %s",
                    e,
                    extra={"payment_intent_id": intent.id},
                )
                return FinalizeOutcome("failed", support)

            if not result.ok:
                logger.error(
                    "Finalize-order returned %d",
                    result.status_code,
                    extra={
                        "payment_intent_id": intent.id,
                        "status_code": result.status_code,
                        "body": result.body,
                    },
                )
                return FinalizeOutcome("failed", support)

            totals = self._cart.totals(self._config)
            order_number = result.order_number
            self._handoff.stage(
                LastOrder(
                    order_number=order_number,
                    payment_intent_id=intent.id,
                    total=totals.total,
                    item_count=self._cart.item_count,
                    email=self._cart.guest_email if is_guest else self._identity.user_email,
                    is_guest=is_guest,
                )
            )

            if order_number:
                if span is not None:
                    span.set_attribute(ATTR_ORDER_NUMBER, order_number)
                logger.info(
                    "Order %s finalized",
                    order_number,
                    extra={"payment_intent_id": intent.id, "order_number": order_number},
                )
                return FinalizeOutcome(
                    "ok",
                    MSG_SUCCEEDED,
                    order_number=order_number,
                    redirect_to=f"/order-confirmed/{order_number}",
                )

            logger.warning(
                "Finalize-order succeeded without an order number",
                extra={"payment_intent_id": intent.id, "is_guest": is_guest},
            )
            return FinalizeOutcome(
                "degraded",
                MSG_PENDING_CONFIRMATION,
                redirect_to="/order-confirmed/pending",
            )


__all__ = [
    "CheckoutState",
    "CheckoutIdentity",
    "FinalizeOutcome",
    "OrderFinalizer",
    "CheckoutFinalizer",
]
