"""
Pytest configuration and shared fixtures for print shop tests.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import pytest

from printshop.models.order import Order
from printshop.services.exceptions import OrdersApiError, TransportError
from printshop.services.sync.transport import TransportMessage


def make_order(order_id: str = "o1", **fields: Any) -> Order:
    """Build an order from storefront-style (camelCase) fields."""
    data = {
        "id": order_id,
        "status": "Pending",
        "storeId": "s1",
        "createdAt": "2024-05-01T10:00:00Z",
        "totalPrice": 10,
    }
    data.update(fields)
    return Order.model_validate(data)


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Wait until ``predicate()`` holds, yielding to background tasks."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


class FakeTransport:
    """In-memory channel transport driven by the test."""

    def __init__(self, *, fail_connects: int = 0) -> None:
        self.fail_connects = fail_connects
        self.connects: list[frozenset[str]] = []
        self.joins: list[str] = []
        self.leaves: list[str] = []
        self.closes = 0
        self.connected = False
        self._queue: asyncio.Queue[TransportMessage | BaseException | None] = asyncio.Queue()

    async def connect(self, endpoint: str, rooms: Iterable[str]) -> None:
        self.connects.append(frozenset(rooms))
        if self.fail_connects:
            self.fail_connects -= 1
            raise TransportError("connection refused")
        self._queue = asyncio.Queue()
        self.connected = True

    async def join(self, room: str) -> None:
        self.joins.append(room)

    async def leave(self, room: str) -> None:
        self.leaves.append(room)

    async def messages(self) -> AsyncIterator[TransportMessage]:
        queue = self._queue
        while True:
            item = await queue.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        self.closes += 1
        if self.connected:
            self.connected = False
            self._queue.put_nowait(None)

    def send(self, payload: dict[str, Any] | str) -> None:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        self._queue.put_nowait(TransportMessage(data=data))

    def drop(self) -> None:
        """Simulate the hub dropping the connection."""
        self.connected = False
        self._queue.put_nowait(TransportError("connection lost"))


class FakeOrdersApi:
    """Stands in for OrdersApiClient in reconciler tests."""

    def __init__(self, orders: Iterable[Order] = ()) -> None:
        self.orders = list(orders)
        self.error: OrdersApiError | None = None
        self.list_calls = 0
        self.gate: asyncio.Event | None = None

    async def list_orders(self, *, store_id: str | None = None) -> list[Order]:
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.orders)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def fake_api():
    return FakeOrdersApi()
