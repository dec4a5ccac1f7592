"""
Order read models.

A purchase is written once per payment intent under
``purchases/{orderNumber}``; authenticated buyers also get a reference
copy under ``customers/{uid}/purchases/{orderNumber}``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ragestate.readmodels.base import ReadModel

PurchaseStatus = Literal["pending", "completed", "partial"]
ItemType = Literal["event", "digital", "physical"]


def purchase_id(order_number: str) -> str:
    return f"purchases/{order_number}"


def customer_purchase_id(customer_id: str, order_number: str) -> str:
    return f"customers/{customer_id}/purchases/{order_number}"


def promo_code_id(code: str) -> str:
    return f"promoterCodes/{code.upper()}"


class PostalAddress(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    line1: str = ""
    line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class AddressDetails(BaseModel):
    """Shipping details with empty-string defaults for every field."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = ""
    phone: str = ""
    address: PostalAddress = Field(default_factory=PostalAddress)


class PurchaseItem(BaseModel):
    product_id: str
    title: str = ""
    price: Decimal
    quantity: int = Field(default=1, ge=1)
    selected_color: str | None = None
    selected_size: str | None = None
    item_type: ItemType = "physical"
    event_details: dict[str, Any] | None = None


class Purchase(ReadModel):
    order_number: str
    payment_intent_id: str
    customer_id: str | None = None
    customer_name: str = "Anonymous"
    customer_email: str = "Unknown"
    is_guest: bool = False
    guest_email: str | None = None
    status: PurchaseStatus = "pending"
    address_details: AddressDetails = Field(default_factory=AddressDetails)
    items: list[PurchaseItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0.00")
    item_count: int = 0
    applied_promo_code: str | None = None
    search_keywords: list[str] = Field(default_factory=list)
    order_date: datetime | None = None


class CustomerPurchaseRef(ReadModel):
    """Per-customer pointer to a purchase."""

    purchase_ref: str
    order_number: str
    status: PurchaseStatus = "pending"
    total_amount: Decimal = Decimal("0.00")
    item_count: int = 0


class PromoCode(ReadModel):
    code: str
    active: bool = True
    current_uses: int = Field(default=0, ge=0)


class ErrorLogEntry(ReadModel):
    """Record of an order save that failed after all retries."""

    type: str = "purchase_error"
    user_id: str | None = None
    user_email: str | None = None
    order_number: str
    payment_intent_id: str
    error: str
    stack: str | None = None


__all__ = [
    "PurchaseStatus",
    "ItemType",
    "purchase_id",
    "customer_purchase_id",
    "promo_code_id",
    "PostalAddress",
    "AddressDetails",
    "PurchaseItem",
    "Purchase",
    "CustomerPurchaseRef",
    "PromoCode",
    "ErrorLogEntry",
]
