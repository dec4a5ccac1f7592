"""
Shopping cart state.

A cart line is identified by ``(product_id, selected_color, selected_size)``;
adding the same product in the same variant bumps that line's quantity.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from ragestate.checkout.amounts import calculate_tax, quantize, to_decimal
from ragestate.config import CheckoutConfig

CheckoutMode = Literal["pending", "guest", "authenticated"]
LineKey = tuple[str, str | None, str | None]


class CartItem(BaseModel):
    product_id: str
    title: str = ""
    price: Decimal
    quantity: int = Field(default=1, ge=1)
    selected_color: str | None = None
    selected_size: str | None = None
    image_url: str | None = None
    is_digital: bool = False
    event_details: dict[str, Any] | None = None

    @property
    def key(self) -> LineKey:
        return (self.product_id, self.selected_color, self.selected_size)

    @property
    def line_total(self) -> Decimal:
        return to_decimal(self.price) * self.quantity


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class Cart(BaseModel):
    """
    Example:
        >>> cart = Cart()
        >>> cart.add(CartItem(product_id="tee", price=Decimal("10.00")))
        >>> cart.add(CartItem(product_id="tee", price=Decimal("10.00")))
        >>> cart.item_count
        2
    """

    items: list[CartItem] = Field(default_factory=list)
    checkout_price: Decimal = Decimal("0")
    payment_intent: str = ""
    guest_email: str | None = None
    checkout_mode: CheckoutMode = "pending"

    def _find(self, key: LineKey) -> int | None:
        for index, item in enumerate(self.items):
            if item.key == key:
                return index
        return None

    def add(self, item: CartItem) -> None:
        """Add one unit; an existing line for the same variant is incremented."""
        index = self._find(item.key)
        if index is not None:
            self.items[index].quantity += 1
        else:
            self.items.append(item.model_copy(update={"quantity": 1}))

    def remove(self, key: LineKey) -> None:
        """Drop the whole line, whatever its quantity."""
        index = self._find(key)
        if index is not None:
            del self.items[index]

    def increment(self, key: LineKey) -> None:
        index = self._find(key)
        if index is not None:
            self.items[index].quantity += 1

    def decrement(self, key: LineKey) -> None:
        index = self._find(key)
        if index is None:
            return
        if self.items[index].quantity > 1:
            self.items[index].quantity -= 1
        else:
            del self.items[index]

    def clear(self) -> None:
        self.items = []
        self.checkout_price = Decimal("0")
        self.payment_intent = ""
        self.guest_email = None
        self.checkout_mode = "pending"

    def set_guest_email(self, email: str) -> None:
        self.guest_email = email
        self.checkout_mode = "guest"

    def set_authenticated(self) -> None:
        self.checkout_mode = "authenticated"

    def clear_guest_info(self) -> None:
        self.guest_email = None
        self.checkout_mode = "pending"

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def totals(self, config: CheckoutConfig | None = None) -> CartTotals:
        """
        Subtotal, tax, shipping and grand total, each rounded to the cent.

        Example:
            >>> cart.totals()  # [10.00 x 2, 5.00 x 1] at 7.5%
            CartTotals(subtotal=Decimal('25.00'), tax=Decimal('1.88'), shipping=Decimal('0.00'), total=Decimal('26.88'))
        """
        config = config or CheckoutConfig()
        subtotal = quantize(sum((item.line_total for item in self.items), Decimal("0")))
        tax = calculate_tax(subtotal, config.tax_rate)
        shipping = quantize(config.shipping)
        return CartTotals(
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            total=quantize(subtotal + tax + shipping),
        )


__all__ = ["CheckoutMode", "LineKey", "CartItem", "CartTotals", "Cart"]
