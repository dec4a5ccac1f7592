"""
Cart, payment and order finalization.

The client side (``Cart``, ``PaymentIntentCreator``, ``CheckoutFinalizer``,
``OrderHandoff``) talks to the server side (``OrderFinalizationService``)
through ``FinalizeOrderClient`` and the wire models in ``contract``.
"""

from ragestate.checkout.amounts import (
    calculate_tax,
    format_cents,
    from_cents,
    quantize,
    to_cents,
    to_decimal,
)
from ragestate.checkout.cart import Cart, CartItem, CartTotals, CheckoutMode, LineKey
from ragestate.checkout.contract import (
    FinalizeCartItem,
    FinalizeOrderRequest,
    FinalizeOrderResponse,
    is_valid_email,
)
from ragestate.checkout.finalize_client import FinalizeOrderClient, FinalizeResult
from ragestate.checkout.finalizer import (
    CheckoutFinalizer,
    CheckoutIdentity,
    CheckoutState,
    FinalizeOutcome,
    OrderFinalizer,
)
from ragestate.checkout.orders import (
    OrderFinalizationService,
    classify_item,
    generate_order_number,
    generate_search_keywords,
)
from ragestate.checkout.payments import (
    ConfirmResult,
    GatewayError,
    InMemoryPaymentGateway,
    PaymentGateway,
    PaymentIntent,
    PaymentIntentCreator,
    PaymentIntentStatus,
    payment_reference,
)
from ragestate.checkout.session import (
    InMemorySessionStorage,
    LastOrder,
    OrderHandoff,
    SessionStorage,
)

__all__ = [
    # Amounts
    "to_decimal",
    "quantize",
    "to_cents",
    "from_cents",
    "format_cents",
    "calculate_tax",
    # Cart
    "Cart",
    "CartItem",
    "CartTotals",
    "CheckoutMode",
    "LineKey",
    # Payments
    "PaymentGateway",
    "PaymentIntent",
    "PaymentIntentStatus",
    "GatewayError",
    "ConfirmResult",
    "InMemoryPaymentGateway",
    "PaymentIntentCreator",
    "payment_reference",
    # Finalization
    "FinalizeCartItem",
    "FinalizeOrderRequest",
    "FinalizeOrderResponse",
    "is_valid_email",
    "FinalizeOrderClient",
    "FinalizeResult",
    "CheckoutFinalizer",
    "CheckoutIdentity",
    "CheckoutState",
    "FinalizeOutcome",
    "OrderFinalizer",
    "OrderFinalizationService",
    "generate_order_number",
    "generate_search_keywords",
    "classify_item",
    # Session hand-off
    "SessionStorage",
    "InMemorySessionStorage",
    "LastOrder",
    "OrderHandoff",
]
