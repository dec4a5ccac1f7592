"""
Server side of the finalize-order endpoint.

Records exactly one purchase per payment intent. Requests for an intent
are serialized by a per-intent lock, and a repeat request returns the
order number already on file.
"""

import asyncio
import logging
import random
import traceback
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ragestate.checkout.amounts import quantize, to_decimal
from ragestate.checkout.contract import (
    FinalizeCartItem,
    FinalizeOrderRequest,
    FinalizeOrderResponse,
    is_valid_email,
)
from ragestate.config import CheckoutConfig
from ragestate.exceptions import FinalizeRequestError, OrderPersistenceError
from ragestate.observability import Tracer, create_tracer
from ragestate.observability.attributes import (
    ATTR_ORDER_NUMBER,
    ATTR_PAYMENT_INTENT_ID,
    ATTR_RETRY_COUNT,
    ATTR_USER_ID,
)
from ragestate.readmodels.in_memory import InMemoryDocumentRepository
from ragestate.readmodels.orders import (
    AddressDetails,
    CustomerPurchaseRef,
    ErrorLogEntry,
    ItemType,
    PromoCode,
    Purchase,
    PurchaseItem,
    customer_purchase_id,
    promo_code_id,
    purchase_id,
)
from ragestate.retry import ImmediateRetryPolicy, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def generate_order_number(now: datetime, rng: random.Random) -> str:
    """``ORDER-YYYYMMDD-NNNN`` with a random four-digit suffix."""
    return f"ORDER-{now:%Y%m%d}-{rng.randint(1000, 9999)}"


def generate_search_keywords(
    name: str | None,
    email: str | None,
    order_number: str | None,
) -> list[str]:
    """
    Lowercased lookup terms for admin order search.

    Example:
        >>> generate_search_keywords("Ava Stone", "Ava@x.io", "ORDER-20250101-1234")
        ['ava', 'stone', 'ava@x.io', 'order-20250101-1234', 'order', '20250101', '1234']
    """
    keywords: list[str] = []
    if name:
        keywords.extend(name.lower().split(" "))
    if email:
        email_lower = email.lower()
        keywords.append(email_lower)
        at_index = email_lower.find("@")
        if at_index > 0:
            keywords.append(email_lower[:at_index])
    if order_number:
        keywords.append(order_number.lower())
        keywords.extend(part.lower() for part in order_number.split("-"))

    seen: set[str] = set()
    result: list[str] = []
    for keyword in keywords:
        if not keyword.strip() or keyword in seen:
            continue
        seen.add(keyword)
        result.append(keyword)
    return result


def classify_item(item: FinalizeCartItem) -> ItemType:
    if item.event_details:
        return "event"
    return "digital" if item.is_digital else "physical"


class OrderFinalizationService:
    """
    Validates finalize-order requests and records purchases.

    Example:
        >>> service = OrderFinalizationService(purchases, customer_purchases, promo_codes, error_logs)
        >>> status, body = await service.handle_request(payload, auth_uid="u1")
        >>> status, body["orderNumber"]
        (200, 'ORDER-20250101-1234')
    """

    def __init__(
        self,
        purchases: InMemoryDocumentRepository[Purchase],
        customer_purchases: InMemoryDocumentRepository[CustomerPurchaseRef],
        promo_codes: InMemoryDocumentRepository[PromoCode],
        error_logs: InMemoryDocumentRepository[ErrorLogEntry],
        *,
        config: CheckoutConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = False,
    ) -> None:
        self._purchases = purchases
        self._customer_purchases = customer_purchases
        self._promo_codes = promo_codes
        self._error_logs = error_logs
        self._config = config or CheckoutConfig()
        self._retry_policy = retry_policy or ImmediateRetryPolicy(self._config.max_save_retries)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._rng = rng or random.Random()
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        # lock and caller count per payment intent, dropped when the count hits 0
        self._intent_locks: dict[str, tuple[asyncio.Lock, int]] = {}

    def validate_request(
        self,
        body: dict[str, Any],
        auth_uid: str | None,
    ) -> FinalizeOrderRequest:
        """
        Check a raw request body against the caller's verified identity.

        Raises:
            FinalizeRequestError: With the HTTP status and code to return
        """
        if not isinstance(body, dict):
            raise FinalizeRequestError(400, "INVALID_REQUEST", "Request body must be an object")

        is_guest = body.get("isGuest") is True
        firebase_id = body.get("firebaseId")
        if is_guest:
            guest_email = body.get("guestEmail")
            if not isinstance(guest_email, str) or not is_valid_email(guest_email):
                raise FinalizeRequestError(
                    400, "INVALID_EMAIL", "Valid email required for guest checkout"
                )
            if firebase_id:
                raise FinalizeRequestError(
                    400, "INVALID_REQUEST", "Cannot provide firebaseId for guest checkout"
                )
        elif firebase_id:
            if not auth_uid:
                raise FinalizeRequestError(401, "UNAUTHENTICATED", "Authentication required")
            if auth_uid != firebase_id:
                raise FinalizeRequestError(
                    403, "FORBIDDEN", "firebaseId does not match authenticated user"
                )

        try:
            request = FinalizeOrderRequest.model_validate(body)
        except PydanticValidationError as e:
            raise FinalizeRequestError(400, "INVALID_REQUEST", str(e)) from e

        if not request.cart_items:
            raise FinalizeRequestError(
                400, "INVALID_REQUEST", "Cart items are required and must be a non-empty array"
            )
        return request

    async def handle_request(
        self,
        body: dict[str, Any],
        auth_uid: str | None = None,
    ) -> tuple[int, dict[str, Any]]:
        """Process one HTTP request and return ``(status, json body)``."""
        try:
            request = self.validate_request(body, auth_uid)
            purchase = await self.finalize(request)
        except FinalizeRequestError as e:
            logger.info(
                "Rejected finalize-order request: %s",
                e.code,
                extra={"status_code": e.status_code, "code": e.code},
            )
            response = FinalizeOrderResponse(ok=False, error=e.message, code=e.code)
            return e.status_code, response.model_dump(mode="json", by_alias=True, exclude_none=True)
        except OrderPersistenceError as e:
            response = FinalizeOrderResponse(
                ok=False, error="Failed to finalize order", code="PERSISTENCE_FAILED"
            )
            logger.error("Order %s was not saved", e.order_number)
            return 500, response.model_dump(mode="json", by_alias=True, exclude_none=True)

        response = FinalizeOrderResponse(ok=True, order_number=purchase.order_number)
        return 200, response.model_dump(mode="json", by_alias=True, exclude_none=True)

    async def finalize(self, request: FinalizeOrderRequest) -> Purchase:
        """
        Record the purchase for a payment intent, or return the existing one.

        Raises:
            OrderPersistenceError: If the purchase could not be saved
        """
        intent_id = request.payment_intent_id
        lock, callers = self._intent_locks.get(intent_id, (asyncio.Lock(), 0))
        self._intent_locks[intent_id] = (lock, callers + 1)
        try:
            async with lock:
                existing = await self.get_by_payment_intent(intent_id)
                if existing is not None:
                    logger.info(
                        "Payment intent %s already finalized as %s",
                        intent_id,
                        existing.order_number,
                        extra={
                            "payment_intent_id": intent_id,
                            "order_number": existing.order_number,
                        },
                    )
                    return existing
                return await self._create_purchase(request)
        finally:
            lock, callers = self._intent_locks[intent_id]
            if callers == 1:
                del self._intent_locks[intent_id]
            else:
                self._intent_locks[intent_id] = (lock, callers - 1)

    @property
    def pending_intents(self) -> int:
        """Number of payment intents with a finalize call in progress."""
        return len(self._intent_locks)

    async def get_by_payment_intent(self, payment_intent_id: str) -> Purchase | None:
        matches = await self._purchases.find(
            lambda p: p.payment_intent_id == payment_intent_id, limit=1
        )
        return matches[0] if matches else None

    async def _new_order_number(self, now: datetime) -> str:
        while True:
            order_number = generate_order_number(now, self._rng)
            if not await self._purchases.exists(purchase_id(order_number)):
                return order_number
            logger.debug("Order number %s taken, regenerating", order_number)

    def build_purchase(
        self,
        request: FinalizeOrderRequest,
        order_number: str,
        now: datetime,
    ) -> Purchase:
        items = [
            PurchaseItem(
                product_id=item.product_id,
                title=item.title,
                price=to_decimal(item.price),
                quantity=item.quantity,
                selected_color=item.selected_color,
                selected_size=item.selected_size,
                item_type=classify_item(item),
                event_details=item.event_details,
            )
            for item in request.cart_items
        ]
        total = quantize(sum((item.price * item.quantity for item in items), Decimal("0")))
        email = request.guest_email if request.is_guest else request.user_email

        return Purchase(
            id=purchase_id(order_number),
            order_number=order_number,
            payment_intent_id=request.payment_intent_id,
            customer_id=request.firebase_id,
            customer_name=request.user_name or "Anonymous",
            customer_email=email or "Unknown",
            is_guest=request.is_guest,
            guest_email=request.guest_email,
            status="pending",
            address_details=request.address_details
            or AddressDetails(name=request.user_name or ""),
            items=items,
            total_amount=total,
            item_count=sum(item.quantity for item in items),
            applied_promo_code=request.applied_promo_code,
            search_keywords=generate_search_keywords(request.user_name, email, order_number),
            order_date=now,
        )

    async def _create_purchase(self, request: FinalizeOrderRequest) -> Purchase:
        now = self._clock()
        order_number = await self._new_order_number(now)
        purchase = self.build_purchase(request, order_number, now)

        with self._tracer.span(
            "ragestate.checkout.save_order",
            {
                ATTR_PAYMENT_INTENT_ID: request.payment_intent_id,
                ATTR_ORDER_NUMBER: order_number,
                ATTR_USER_ID: request.firebase_id or "",
            },
        ) as span:
            try:
                await self._with_retries(
                    order_number, "purchase", lambda: self._purchases.save(purchase)
                )
                ref_id = None
                if request.firebase_id:
                    ref_id = customer_purchase_id(request.firebase_id, order_number)
                    ref = CustomerPurchaseRef(
                        id=ref_id,
                        purchase_ref=purchase.id,
                        order_number=order_number,
                        total_amount=purchase.total_amount,
                        item_count=purchase.item_count,
                    )
                    await self._with_retries(
                        order_number,
                        "customer purchase",
                        lambda: self._customer_purchases.save(ref),
                    )

                saved = await self._with_retries(
                    order_number,
                    "purchase status",
                    lambda: self._purchases.update(purchase.id, {"status": "completed"}),
                )
                if ref_id is not None:
                    await self._with_retries(
                        order_number,
                        "customer purchase status",
                        lambda: self._customer_purchases.update(ref_id, {"status": "completed"}),
                    )
            except OrderPersistenceError as e:
                if span is not None:
                    span.set_attribute(ATTR_RETRY_COUNT, e.attempts - 1)
                await self._record_failure(request, order_number, e)
                raise

        await self._increment_promo_usage(request.applied_promo_code, order_number)
        logger.info(
            "Purchase %s saved",
            order_number,
            extra={
                "order_number": order_number,
                "payment_intent_id": request.payment_intent_id,
                "is_guest": request.is_guest,
                "item_count": saved.item_count,
            },
        )
        return saved

    async def _with_retries(
        self,
        order_number: str,
        description: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not self._retry_policy.should_retry(attempt, e):
                    raise OrderPersistenceError(order_number, attempt + 1, e) from e
                logger.warning(
                    "Retry attempt %d saving %s for %s after error: %s",
                    attempt + 1,
                    description,
                    order_number,
                    e,
                    extra={"order_number": order_number, "attempt": attempt + 1},
                )
                delay = self._retry_policy.get_backoff(attempt)
                if delay > 0:
                    await asyncio.sleep(delay)
                attempt += 1

    async def _record_failure(
        self,
        request: FinalizeOrderRequest,
        order_number: str,
        error: OrderPersistenceError,
    ) -> None:
        logger.critical(
            "Failed to save purchase %s after %d attempts: %s",
            order_number,
            error.attempts,
            error.cause,
            extra={
                "order_number": order_number,
                "payment_intent_id": request.payment_intent_id,
                "attempts": error.attempts,
            },
        )
        try:
            await self._error_logs.save(
                ErrorLogEntry(
                    id=f"errorLogs/{uuid4()}",
                    user_id=request.firebase_id,
                    user_email=request.guest_email or request.user_email,
                    order_number=order_number,
                    payment_intent_id=request.payment_intent_id,
                    error=str(error.cause),
                    stack="".join(traceback.format_exception(error.cause)),
                )
            )
        except Exception as log_error:
            logger.error("Failed to record purchase error: %s", log_error)

    async def _increment_promo_usage(self, code: str | None, order_number: str) -> None:
        if not code:
            return
        try:
            await self._promo_codes.update(promo_code_id(code), increment={"current_uses": 1})
        except Exception as e:
            logger.warning(
                "Failed to update promo code usage for %s: %s",
                code,
                e,
                extra={"promo_code": code, "order_number": order_number},
            )


__all__ = [
    "generate_order_number",
    "generate_search_keywords",
    "classify_item",
    "OrderFinalizationService",
]
