"""
Read models derived from the event log, and the repository that stores them.
"""

from ragestate.readmodels.base import ReadModel
from ragestate.readmodels.chat import (
    ChatDocument,
    ChatSummary,
    DmChatSummary,
    EventChatSummary,
    LastMessage,
    chat_document_id,
    parse_chat_summary,
    summary_id,
)
from ragestate.readmodels.feed import PostDocument, post_document_id
from ragestate.readmodels.in_memory import (
    DocumentListener,
    InMemoryDocumentRepository,
    WriteBatch,
)
from ragestate.readmodels.orders import (
    AddressDetails,
    CustomerPurchaseRef,
    ErrorLogEntry,
    PostalAddress,
    PromoCode,
    Purchase,
    PurchaseItem,
    customer_purchase_id,
    promo_code_id,
    purchase_id,
)

__all__ = [
    "ReadModel",
    # Chat
    "ChatDocument",
    "ChatSummary",
    "DmChatSummary",
    "EventChatSummary",
    "LastMessage",
    "chat_document_id",
    "parse_chat_summary",
    "summary_id",
    # Feed
    "PostDocument",
    "post_document_id",
    # Orders
    "AddressDetails",
    "CustomerPurchaseRef",
    "ErrorLogEntry",
    "PostalAddress",
    "PromoCode",
    "Purchase",
    "PurchaseItem",
    "customer_purchase_id",
    "promo_code_id",
    "purchase_id",
    # Repository
    "DocumentListener",
    "InMemoryDocumentRepository",
    "WriteBatch",
]
