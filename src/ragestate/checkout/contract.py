"""
Wire contract of the finalize-order endpoint.

Bodies use camelCase keys (``paymentIntentId``, ``firebaseId``, ...); the
models accept either the alias or the Python field name.
"""

import re
from decimal import Decimal
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ragestate.checkout.cart import Cart, CartItem
from ragestate.readmodels.orders import AddressDetails

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.match(value) is not None


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class FinalizeCartItem(_WireModel):
    product_id: str
    title: str = ""
    price: Decimal
    quantity: int = Field(default=1, ge=1)
    selected_color: str | None = None
    selected_size: str | None = None
    is_digital: bool = False
    event_details: dict[str, Any] | None = None

    @classmethod
    def from_cart_item(cls, item: CartItem) -> Self:
        return cls(
            product_id=item.product_id,
            title=item.title,
            price=item.price,
            quantity=item.quantity,
            selected_color=item.selected_color,
            selected_size=item.selected_size,
            is_digital=item.is_digital,
            event_details=item.event_details,
        )


class FinalizeOrderRequest(_WireModel):
    """
    Body of ``POST /api/payments/finalize-order``.

    A request is either authenticated (``firebase_id`` set, ``is_guest``
    false, no guest email) or a guest checkout (``guest_email`` set,
    ``is_guest`` true, no firebase id). Anything else fails validation.
    """

    payment_intent_id: str = Field(min_length=1)
    firebase_id: str | None = None
    user_email: str | None = None
    user_name: str | None = None
    cart_items: list[FinalizeCartItem] = Field(default_factory=list)
    address_details: AddressDetails | None = None
    applied_promo_code: str | None = None
    is_guest: bool = False
    guest_email: str | None = None

    @model_validator(mode="after")
    def _check_identity(self) -> Self:
        if self.is_guest:
            if not self.guest_email or self.firebase_id:
                raise ValueError("guest checkout needs guestEmail and no firebaseId")
        elif not self.firebase_id or self.guest_email:
            raise ValueError("authenticated checkout needs firebaseId and no guestEmail")
        return self

    @classmethod
    def for_cart(
        cls,
        cart: Cart,
        payment_intent_id: str,
        *,
        firebase_id: str | None = None,
        user_email: str | None = None,
        user_name: str | None = None,
        address_details: AddressDetails | None = None,
        applied_promo_code: str | None = None,
    ) -> Self:
        is_guest = cart.checkout_mode == "guest"
        return cls(
            payment_intent_id=payment_intent_id,
            firebase_id=None if is_guest else firebase_id,
            user_email=cart.guest_email if is_guest else user_email,
            user_name=user_name,
            cart_items=[FinalizeCartItem.from_cart_item(item) for item in cart.items],
            address_details=address_details,
            applied_promo_code=applied_promo_code,
            is_guest=is_guest,
            guest_email=cart.guest_email if is_guest else None,
        )


class FinalizeOrderResponse(_WireModel):
    ok: bool = False
    order_number: str | None = None
    error: str | None = None
    code: str | None = None


__all__ = [
    "EMAIL_PATTERN",
    "is_valid_email",
    "FinalizeCartItem",
    "FinalizeOrderRequest",
    "FinalizeOrderResponse",
]
