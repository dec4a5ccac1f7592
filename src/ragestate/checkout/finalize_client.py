"""
HTTP client for the finalize-order endpoint.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

from ragestate.checkout.contract import FinalizeOrderRequest
from ragestate.config import CheckoutConfig
from ragestate.exceptions import CheckoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinalizeResult:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def order_number(self) -> str | None:
        value = self.body.get("orderNumber")
        return value if isinstance(value, str) and value else None


class FinalizeOrderClient:
    """
    Posts finalize-order requests.

    ``requests`` is blocking, so each call runs in a worker thread.

    Example:
        >>> client = FinalizeOrderClient("https://ragestate.com")
        >>> result = await client.finalize(request, id_token=token)
        >>> result.ok, result.order_number
        (True, 'ORDER-20250101-1234')
    """

    def __init__(
        self,
        base_url: str,
        *,
        config: CheckoutConfig | None = None,
        session: requests.Session | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._config = config or CheckoutConfig()
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}{self._config.finalize_endpoint}"

    async def finalize(
        self,
        request: FinalizeOrderRequest,
        *,
        id_token: str | None = None,
    ) -> FinalizeResult:
        """
        Raises:
            CheckoutError: If the endpoint could not be reached
        """
        return await asyncio.to_thread(self._post, request.to_wire(), id_token)

    def _post(self, payload: dict[str, Any], id_token: str | None) -> FinalizeResult:
        headers = {"Content-Type": "application/json"}
        if id_token:
            headers["Authorization"] = f"Bearer {id_token}"
        try:
            response = self._session.post(
                self.endpoint,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "Finalize-order request failed: %s",
                e,
                extra={
                    "endpoint": self.endpoint,
                    "payment_intent_id": payload.get("paymentIntentId"),
                },
            )
            raise CheckoutError(f"Finalize-order request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}
        if not isinstance(body, dict):
            body = {"raw": body}
        return FinalizeResult(status_code=response.status_code, body=body)


__all__ = ["FinalizeResult", "FinalizeOrderClient"]
