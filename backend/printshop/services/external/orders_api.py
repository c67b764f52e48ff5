"""Storefront orders REST API client."""

from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from printshop.config import settings
from printshop.models.order import Order
from printshop.services.exceptions import InvalidStatus, OrderNotFound, OrdersApiError
from printshop.utils.request_retry import RequestRetryConfig, get_request_retrying

logger = structlog.get_logger(__name__)


class OrdersApiClient:
    """Client for the storefront's ``/orders`` endpoints.

    Every call is bound by a fixed client-side timeout. Network errors are
    retried briefly; any failure that remains is raised as ``OrdersApiError``
    so the caller can keep its last-known-good state.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
        retry: RequestRetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.api_url).rstrip("/")
        self._token = settings.api_token if token is None else token
        self._timeout = settings.request_timeout if timeout is None else timeout
        self._retry = retry or RequestRetryConfig(max_attempts=settings.request_max_attempts)
        self._transport = transport

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._get_headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            OrderNotFound: The server answered 404
            OrdersApiError: Timeout, network error, other error status, or a non-JSON body
        """
        try:
            async with self._get_client() as client:
                async for attempt in get_request_retrying(self._retry):
                    with attempt:
                        response = await client.request(method, path, json=json, params=params)
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.error(
                "Orders API returned error status",
                method=method,
                path=path,
                status_code=status_code,
            )
            if status_code == httpx.codes.NOT_FOUND:
                raise OrderNotFound(f"{method} {path}") from e
            raise OrdersApiError(f"{method} {path} failed with {status_code}", status_code=status_code) from e
        except httpx.RequestError as e:
            logger.error(
                "Orders API request failed",
                method=method,
                path=path,
                error=str(e) or type(e).__name__,
            )
            raise OrdersApiError(f"{method} {path} failed: {type(e).__name__}") from e
        except ValueError as e:
            logger.error("Orders API returned invalid JSON", method=method, path=path)
            raise OrdersApiError(f"{method} {path} returned invalid JSON") from e

    async def list_orders(self, *, store_id: str | None = None) -> list[Order]:
        """Fetch all orders visible to the caller.

        Orders that fail validation are skipped with a warning rather than
        failing the whole listing.

        Args:
            store_id: Optional store filter passed as a query parameter

        Returns:
            Orders in the order the server returned them
        """
        params = {"storeId": store_id} if store_id else None
        data = await self._request("GET", "/orders", params=params)

        orders: list[Order] = []
        for item in _extract_order_list(data):
            try:
                orders.append(Order.model_validate(item))
            except (ValueError, InvalidStatus) as e:
                logger.warning("Skipping invalid order in listing", error=str(e))
        return orders

    async def get_order(self, order_id: str) -> Order:
        """Fetch one order."""
        data = await self._request("GET", f"/orders/{order_id}")
        return _parse_order(data)

    async def update_order(self, order_id: str, patch: Mapping[str, Any]) -> Order:
        """Update an order (``PUT /orders/{id}``) and return the server's copy."""
        data = await self._request("PUT", f"/orders/{order_id}", json=patch)
        return _parse_order(data)

    async def create_order(self, payload: Mapping[str, Any]) -> Order:
        """Submit a new order (``POST /orders``) and return the server's copy."""
        data = await self._request("POST", "/orders", json=payload)
        return _parse_order(data)


def _extract_order_list(data: Any) -> list[Any]:
    """Find the order list in a listing response.

    The storefront has returned a bare list, ``{"orders": [...]}``, and
    envelopes with the list under another key.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("orders"), list):
            return data["orders"]
        for value in data.values():
            if isinstance(value, list) and value and isinstance(value[0], dict) and (
                "id" in value[0] or "_id" in value[0] or "status" in value[0]
            ):
                return value
    logger.warning("Unrecognized order listing response", response_type=type(data).__name__)
    return []


def _unwrap_order(data: Any) -> Any:
    """Accept both a bare order and ``{"order": {...}}``."""
    if isinstance(data, dict) and isinstance(data.get("order"), dict):
        return data["order"]
    return data


def _parse_order(data: Any) -> Order:
    try:
        return Order.model_validate(_unwrap_order(data))
    except (ValueError, InvalidStatus) as e:
        logger.error("Orders API returned an invalid order", error=str(e))
        raise OrdersApiError("Invalid order in response") from e
