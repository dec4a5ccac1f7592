"""
Retry policies for projection fan-out and order persistence.

A RetryPolicy decides whether a failed attempt is retried and how long to
wait first. Summary fan-out jobs use exponential backoff; the order save
path retries immediately.

Example:
    >>> from ragestate.retry import (
    ...     ExponentialBackoffRetryPolicy,
    ...     RetryConfig,
    ... )
    >>> policy = ExponentialBackoffRetryPolicy(
    ...     config=RetryConfig(max_retries=5, initial_delay=0.5)
    ... )
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# Common transient exceptions that should be retried
TRANSIENT_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
)


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts (0 = no retries)
        initial_delay: Initial delay in seconds before first retry
        max_delay: Maximum delay in seconds between retries
        exponential_base: Base for exponential backoff calculation
        jitter: Fraction of delay to add as random jitter (0-1)
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.1

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_retries < 0:
            raise ValueError(
                f"max_retries must be >= 0, got {self.max_retries}. Use 0 for no retries."
            )

        if self.initial_delay <= 0:
            raise ValueError(f"initial_delay must be positive, got {self.initial_delay}.")

        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})."
            )

        if self.exponential_base <= 1.0:
            raise ValueError(f"exponential_base must be > 1.0, got {self.exponential_base}.")

        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must be between 0.0 and 1.0, got {self.jitter}.")


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """
    Calculate backoff delay with exponential growth and jitter.

    Args:
        attempt: Current attempt number (0-based)
        config: Retry configuration

    Returns:
        Delay in seconds, never negative
    """
    delay = config.initial_delay * (config.exponential_base**attempt)
    delay = min(delay, config.max_delay)

    jitter_range = delay * config.jitter
    delay += random.uniform(-jitter_range, jitter_range)  # nosec B311 - not crypto

    return max(0, delay)


@runtime_checkable
class RetryPolicy(Protocol):
    """
    Protocol for retry policies.

    ``max_retries`` does not include the initial attempt, so max_retries=3
    means up to 4 total attempts.
    """

    @property
    def max_retries(self) -> int:
        """Maximum number of retry attempts."""
        ...

    def get_backoff(self, attempt: int) -> float:
        """
        Calculate the delay before the next retry attempt.

        Args:
            attempt: The current attempt number (0-based).
                    After first failure, attempt=0.
        """
        ...

    def should_retry(self, attempt: int, error: Exception) -> bool:
        """Determine if a retry should be attempted after ``error``."""
        ...


class ExponentialBackoffRetryPolicy:
    """
    Retry policy with exponential backoff.

    Default backoff progression: 1s, 2s, 4s (plus jitter).
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self._config = config or RetryConfig()

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    @property
    def config(self) -> RetryConfig:
        return self._config

    def get_backoff(self, attempt: int) -> float:
        return calculate_backoff(attempt, self._config)

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return attempt < self._config.max_retries

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoffRetryPolicy("
            f"max_retries={self._config.max_retries}, "
            f"initial_delay={self._config.initial_delay}, "
            f"exponential_base={self._config.exponential_base})"
        )


class ImmediateRetryPolicy:
    """
    Retry policy that retries without any delay.

    Used by the order save path, where each attempt is logged and the next
    one starts right away.

    Example:
        >>> policy = ImmediateRetryPolicy(max_retries=3)
        >>> policy.get_backoff(0)
        0.0
    """

    def __init__(self, max_retries: int = 3) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}.")
        self._max_retries = max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    def get_backoff(self, attempt: int) -> float:
        return 0.0

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return attempt < self._max_retries

    def __repr__(self) -> str:
        return f"ImmediateRetryPolicy(max_retries={self._max_retries})"


class NoRetryPolicy:
    """
    Retry policy that never retries.

    Example:
        >>> NoRetryPolicy().should_retry(0, ValueError("test"))
        False
    """

    @property
    def max_retries(self) -> int:
        return 0

    def get_backoff(self, attempt: int) -> float:
        return 0.0

    def should_retry(self, attempt: int, error: Exception) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoRetryPolicy()"


class FilteredRetryPolicy:
    """
    Retry policy that only retries selected exception types.

    Example:
        >>> policy = FilteredRetryPolicy(
        ...     base_policy=ExponentialBackoffRetryPolicy(),
        ...     retryable_exceptions=TRANSIENT_EXCEPTIONS,
        ... )
        >>> policy.should_retry(0, ConnectionError("timeout"))
        True
        >>> policy.should_retry(0, ValueError("invalid"))
        False
    """

    def __init__(
        self,
        base_policy: RetryPolicy,
        retryable_exceptions: tuple[type[Exception], ...],
    ) -> None:
        self._base_policy = base_policy
        self._retryable_exceptions = retryable_exceptions

    @property
    def max_retries(self) -> int:
        return self._base_policy.max_retries

    def get_backoff(self, attempt: int) -> float:
        return self._base_policy.get_backoff(attempt)

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if not isinstance(error, self._retryable_exceptions):
            return False
        return self._base_policy.should_retry(attempt, error)

    def __repr__(self) -> str:
        exception_names = [e.__name__ for e in self._retryable_exceptions]
        return f"FilteredRetryPolicy(base={self._base_policy!r}, exceptions={exception_names})"


__all__ = [
    "TRANSIENT_EXCEPTIONS",
    "RetryConfig",
    "calculate_backoff",
    "RetryPolicy",
    "ExponentialBackoffRetryPolicy",
    "ImmediateRetryPolicy",
    "NoRetryPolicy",
    "FilteredRetryPolicy",
]
