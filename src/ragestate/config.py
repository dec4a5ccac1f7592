"""
Configuration objects for ragestate components.

Every component receives its configuration explicitly through its
constructor; there is no module-level mutable state.

Example:
    >>> from ragestate.config import CheckoutConfig
    >>> config = CheckoutConfig(tax_rate=Decimal("0.08"))
"""

from dataclasses import dataclass, field
from decimal import Decimal

from ragestate.retry import RetryConfig


@dataclass(frozen=True)
class ChatConfig:
    """
    Settings for chat sessions and the chat list.

    Attributes:
        page_size: Messages per live window and per "load more" page
        chat_list_limit: Maximum chat summaries shown in the chat list
        recent_contacts_limit: Default size of the recent DM contacts strip
    """

    page_size: int = 50
    chat_list_limit: int = 50
    recent_contacts_limit: int = 5

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.chat_list_limit < 1:
            raise ValueError(f"chat_list_limit must be >= 1, got {self.chat_list_limit}")
        if self.recent_contacts_limit < 0:
            raise ValueError(
                f"recent_contacts_limit must be >= 0, got {self.recent_contacts_limit}"
            )


@dataclass(frozen=True)
class FeedConfig:
    """
    Settings for the social feed.

    Attributes:
        page_size: Posts per feed page
        comment_page_size: Newest comments kept live per post
    """

    page_size: int = 10
    comment_page_size: int = 50

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {self.page_size}")
        if self.comment_page_size < 1:
            raise ValueError(f"comment_page_size must be >= 1, got {self.comment_page_size}")


@dataclass(frozen=True)
class CheckoutConfig:
    """
    Settings for cart totals, payment intents and order finalization.

    Attributes:
        tax_rate: Sales tax applied to the subtotal
        shipping: Flat shipping charge
        minimum_charge_cents: Smallest amount the payment processor accepts
        max_save_retries: Immediate retries of the order save after the first attempt
        finalize_endpoint: Path of the finalize-order endpoint
        support_email: Address shown in support-contact messages
    """

    tax_rate: Decimal = Decimal("0.075")
    shipping: Decimal = Decimal("0.00")
    minimum_charge_cents: int = 50
    max_save_retries: int = 3
    finalize_endpoint: str = "/api/payments/finalize-order"
    support_email: str = "support@ragestate.com"

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.tax_rate < Decimal("1"):
            raise ValueError(f"tax_rate must be in [0, 1), got {self.tax_rate}")
        if self.shipping < 0:
            raise ValueError(f"shipping must be >= 0, got {self.shipping}")
        if self.minimum_charge_cents < 0:
            raise ValueError(
                f"minimum_charge_cents must be >= 0, got {self.minimum_charge_cents}"
            )
        if self.max_save_retries < 0:
            raise ValueError(f"max_save_retries must be >= 0, got {self.max_save_retries}")


@dataclass(frozen=True)
class CatalogConfig:
    """Settings for the product catalog cache."""

    cache_ttl_seconds: float = 120.0

    def __post_init__(self) -> None:
        if self.cache_ttl_seconds < 0:
            raise ValueError(f"cache_ttl_seconds must be >= 0, got {self.cache_ttl_seconds}")


@dataclass(frozen=True)
class FanoutConfig:
    """
    Settings for per-recipient summary fan-out.

    Attributes:
        retry: Backoff settings for a failing recipient job
        drain_inline: Drain the outbox as soon as jobs are enqueued
    """

    retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_retries=3, initial_delay=0.5, max_delay=5.0)
    )
    drain_inline: bool = True


@dataclass(frozen=True)
class ModerationConfig:
    """
    Rules for advisory content moderation.

    Attributes:
        blocked_terms: Case-insensitive whole-word terms that flag a message
        max_links: Links allowed before a message is flagged
        max_repeated_chars: Longest run of one character before a message is flagged
    """

    blocked_terms: frozenset[str] = frozenset()
    max_links: int = 3
    max_repeated_chars: int = 12

    def __post_init__(self) -> None:
        if self.max_links < 0:
            raise ValueError(f"max_links must be >= 0, got {self.max_links}")
        if self.max_repeated_chars < 2:
            raise ValueError(f"max_repeated_chars must be >= 2, got {self.max_repeated_chars}")


__all__ = [
    "ChatConfig",
    "FeedConfig",
    "CheckoutConfig",
    "CatalogConfig",
    "FanoutConfig",
    "ModerationConfig",
    "RetryConfig",
]
