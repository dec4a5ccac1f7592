"""
ragestate - chat, feed and checkout sync core for RAGESTATE.

This library provides:
- Event log store with In-Memory and SQLite backends, plus live queries
- Log events for chats, messages, posts, likes and comments
- Projectors that keep chat summaries and post counters up to date,
  with an outbox, retries and a dead letter queue for summary fan-out
- Client views that merge optimistic writes with live data
- Cart, payment and order finalization
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ragestate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from ragestate.bus import EventBus, InMemoryEventBus
from ragestate.catalog import Product, ProductCatalog, format_slug
from ragestate.checkout import (
    Cart,
    CartItem,
    CheckoutFinalizer,
    FinalizeOrderClient,
    FinalizeOrderRequest,
    OrderFinalizationService,
    OrderHandoff,
    PaymentIntentCreator,
)
from ragestate.client import (
    ChatListView,
    ChatSession,
    CommentThread,
    FeedView,
    SessionUser,
    get_dm_chat_id,
    reconcile,
    start_dm,
)
from ragestate.config import (
    CatalogConfig,
    ChatConfig,
    CheckoutConfig,
    FanoutConfig,
    FeedConfig,
    ModerationConfig,
)
from ragestate.events import (
    ChatCreated,
    CommentCreated,
    CommentDeleted,
    LogEvent,
    MessageCreated,
    PostCreated,
    PostLiked,
    PostUnliked,
    register_event,
)
from ragestate.exceptions import (
    CatalogUnavailableError,
    CheckoutError,
    DocumentNotFoundError,
    EventNotFoundError,
    EventStoreError,
    FinalizeRequestError,
    MessageValidationError,
    MinimumChargeError,
    OrderPersistenceError,
    RageStateError,
    UnexpectedEventTypeError,
    ValidationError,
)
from ragestate.handlers import handles
from ragestate.moderation import ModerationResult, check_content
from ragestate.projections import ChatSummaryProjector, FanoutWorker, PostCounterProjector
from ragestate.readmodels import InMemoryDocumentRepository
from ragestate.repositories import InMemoryDLQRepository, InMemoryFanoutOutbox
from ragestate.retry import (
    ExponentialBackoffRetryPolicy,
    ImmediateRetryPolicy,
    NoRetryPolicy,
    RetryConfig,
)
from ragestate.stores import (
    EventLogStore,
    InMemoryEventLogStore,
    LiveQuery,
    ReadOptions,
    SQLiteEventLogStore,
)
from ragestate.users import InMemoryUserDirectory, get_display_info

__all__ = [
    "__version__",
    # Events
    "LogEvent",
    "ChatCreated",
    "MessageCreated",
    "PostCreated",
    "PostLiked",
    "PostUnliked",
    "CommentCreated",
    "CommentDeleted",
    "register_event",
    "handles",
    # Stores
    "EventLogStore",
    "InMemoryEventLogStore",
    "SQLiteEventLogStore",
    "LiveQuery",
    "ReadOptions",
    # Bus
    "EventBus",
    "InMemoryEventBus",
    # Projections
    "ChatSummaryProjector",
    "PostCounterProjector",
    "FanoutWorker",
    "InMemoryDocumentRepository",
    "InMemoryDLQRepository",
    "InMemoryFanoutOutbox",
    # Retry
    "RetryConfig",
    "ExponentialBackoffRetryPolicy",
    "ImmediateRetryPolicy",
    "NoRetryPolicy",
    # Client
    "ChatSession",
    "ChatListView",
    "CommentThread",
    "FeedView",
    "SessionUser",
    "get_dm_chat_id",
    "start_dm",
    "reconcile",
    # Checkout
    "Cart",
    "CartItem",
    "PaymentIntentCreator",
    "CheckoutFinalizer",
    "FinalizeOrderClient",
    "FinalizeOrderRequest",
    "OrderFinalizationService",
    "OrderHandoff",
    # Catalog
    "Product",
    "ProductCatalog",
    "format_slug",
    # Supporting
    "ModerationResult",
    "check_content",
    "InMemoryUserDirectory",
    "get_display_info",
    # Configuration
    "ChatConfig",
    "FeedConfig",
    "CheckoutConfig",
    "CatalogConfig",
    "FanoutConfig",
    "ModerationConfig",
    # Exceptions
    "RageStateError",
    "UnexpectedEventTypeError",
    "ValidationError",
    "MessageValidationError",
    "EventStoreError",
    "EventNotFoundError",
    "DocumentNotFoundError",
    "CheckoutError",
    "MinimumChargeError",
    "FinalizeRequestError",
    "OrderPersistenceError",
    "CatalogUnavailableError",
]
