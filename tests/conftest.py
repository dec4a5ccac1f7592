"""
Shared pytest fixtures for the ragestate tests.

This module provides:
- Event log fixtures (bus, store) wired the way the app wires them
- Read model repositories (chats, summaries, posts, order collections)
- Projector fixtures subscribed to the bus
- Session users and a user directory with display profiles
- Checkout fixtures (cart, gateway, order service)
"""

from __future__ import annotations

import random
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from decimal import Decimal

import pytest
import pytest_asyncio

from ragestate.bus.memory import InMemoryEventBus
from ragestate.checkout.cart import Cart, CartItem
from ragestate.checkout.orders import OrderFinalizationService
from ragestate.checkout.payments import InMemoryPaymentGateway
from ragestate.client.chat import SessionUser
from ragestate.projections.chat_summary import ChatSummaryDocument, ChatSummaryProjector
from ragestate.projections.post_counters import PostCounterProjector
from ragestate.readmodels.chat import ChatDocument
from ragestate.readmodels.feed import PostDocument
from ragestate.readmodels.in_memory import InMemoryDocumentRepository
from ragestate.readmodels.orders import CustomerPurchaseRef, ErrorLogEntry, PromoCode, Purchase
from ragestate.repositories.dlq import InMemoryDLQRepository
from ragestate.retry import ImmediateRetryPolicy
from ragestate.stores.in_memory import InMemoryEventLogStore
from ragestate.stores.sqlite import SQLiteEventLogStore
from ragestate.users import InMemoryUserDirectory, Profile

FIXED_NOW = datetime(2025, 3, 14, 20, 30, tzinfo=UTC)


# ============================================================================
# Event log
# ============================================================================


@pytest.fixture
def bus() -> InMemoryEventBus:
    """Bus the store publishes newly stored events to."""
    return InMemoryEventBus(enable_tracing=False)


@pytest.fixture
def store(bus: InMemoryEventBus) -> InMemoryEventLogStore:
    """In-memory event log publishing to ``bus``."""
    return InMemoryEventLogStore(publisher=bus, enable_tracing=False)


@pytest_asyncio.fixture
async def sqlite_store() -> AsyncGenerator[SQLiteEventLogStore, None]:
    """Initialized SQLite event log backed by an in-memory database."""
    store = SQLiteEventLogStore(":memory:", wal_mode=False, enable_tracing=False)
    await store.initialize()
    yield store
    await store.close()


# ============================================================================
# Read models
# ============================================================================


@pytest.fixture
def chats() -> InMemoryDocumentRepository[ChatDocument]:
    return InMemoryDocumentRepository("chats", enable_tracing=False)


@pytest.fixture
def summaries() -> InMemoryDocumentRepository[ChatSummaryDocument]:
    return InMemoryDocumentRepository("chatSummaries", enable_tracing=False)


@pytest.fixture
def posts() -> InMemoryDocumentRepository[PostDocument]:
    return InMemoryDocumentRepository("posts", enable_tracing=False)


@pytest.fixture
def users() -> InMemoryUserDirectory:
    """Directory holding profiles for alice and bob."""
    directory = InMemoryUserDirectory()
    directory.add_profile("alice", Profile(display_name="Alice", photo_url="https://img/alice"))
    directory.add_profile("bob", Profile(display_name="Bob"))
    return directory


@pytest.fixture
def dlq_repo() -> InMemoryDLQRepository:
    return InMemoryDLQRepository(enable_tracing=False)


# ============================================================================
# Projectors
# ============================================================================


@pytest.fixture
def projector(
    bus: InMemoryEventBus,
    store: InMemoryEventLogStore,
    chats: InMemoryDocumentRepository[ChatDocument],
    summaries: InMemoryDocumentRepository[ChatSummaryDocument],
    users: InMemoryUserDirectory,
    dlq_repo: InMemoryDLQRepository,
) -> ChatSummaryProjector:
    """Chat summary projector subscribed to the bus, retrying without delay."""
    projector = ChatSummaryProjector(
        store,
        chats,
        summaries,
        users,
        dlq_repo=dlq_repo,
        retry_policy=ImmediateRetryPolicy(max_retries=2),
    )
    bus.subscribe_all(projector)
    return projector


@pytest.fixture
def post_projector(
    bus: InMemoryEventBus,
    store: InMemoryEventLogStore,
    posts: InMemoryDocumentRepository[PostDocument],
) -> PostCounterProjector:
    """Post counter projector subscribed to the bus."""
    projector = PostCounterProjector(store, posts)
    bus.subscribe_all(projector)
    return projector


# ============================================================================
# Users
# ============================================================================


@pytest.fixture
def alice() -> SessionUser:
    return SessionUser("alice", "Alice", "https://img/alice")


@pytest.fixture
def bob() -> SessionUser:
    return SessionUser("bob", "Bob")


# ============================================================================
# Checkout
# ============================================================================


@pytest.fixture
def cart() -> Cart:
    """Two tees at 10.00 and one hat at 5.00."""
    cart = Cart()
    tee = CartItem(product_id="tee", title="Rage Tee", price=Decimal("10.00"), selected_size="M")
    cart.add(tee)
    cart.add(tee)
    cart.add(CartItem(product_id="hat", title="Rage Hat", price=Decimal("5.00")))
    return cart


@pytest.fixture
def gateway() -> InMemoryPaymentGateway:
    return InMemoryPaymentGateway()


@pytest.fixture
def purchases() -> InMemoryDocumentRepository[Purchase]:
    return InMemoryDocumentRepository("purchases", enable_tracing=False)


@pytest.fixture
def customer_purchases() -> InMemoryDocumentRepository[CustomerPurchaseRef]:
    return InMemoryDocumentRepository("customerPurchases", enable_tracing=False)


@pytest.fixture
def promo_codes() -> InMemoryDocumentRepository[PromoCode]:
    return InMemoryDocumentRepository("promoterCodes", enable_tracing=False)


@pytest.fixture
def error_logs() -> InMemoryDocumentRepository[ErrorLogEntry]:
    return InMemoryDocumentRepository("errorLogs", enable_tracing=False)


@pytest.fixture
def order_service(
    purchases: InMemoryDocumentRepository[Purchase],
    customer_purchases: InMemoryDocumentRepository[CustomerPurchaseRef],
    promo_codes: InMemoryDocumentRepository[PromoCode],
    error_logs: InMemoryDocumentRepository[ErrorLogEntry],
) -> OrderFinalizationService:
    """Order service with a fixed clock and a seeded order number generator."""
    return OrderFinalizationService(
        purchases,
        customer_purchases,
        promo_codes,
        error_logs,
        clock=lambda: FIXED_NOW,
        rng=random.Random(7),
    )
