"""Mercure publishing of order events to store rooms."""

import httpx
import jwt
import structlog

from printshop.config import settings
from printshop.models.events import (
    OrderCreatedEvent,
    OrderDeletedEvent,
    OrdersInvalidatedEvent,
    OrderUpdatedEvent,
    room_topic,
)
from printshop.models.order import Order

logger = structlog.get_logger(__name__)

PublishedEvent = OrderCreatedEvent | OrderUpdatedEvent | OrderDeletedEvent | OrdersInvalidatedEvent


class MercurePublisher:
    """Publishes order events to the hub, one topic per store room."""

    def __init__(
        self,
        hub_url: str | None = None,
        *,
        jwt_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._hub_url = hub_url or settings.mercure_url
        self._jwt_key = settings.mercure_publisher_jwt_key if jwt_key is None else jwt_key
        self._timeout = timeout
        self._transport = transport

    def _create_jwt(self) -> str:
        """Create a JWT token for publishing to Mercure.

        The token grants permission to publish to any topic.
        """
        return jwt.encode(
            {"mercure": {"publish": ["*"]}},
            self._jwt_key,
            algorithm="HS256",
        )

    async def _publish(self, tenant_id: str, event: PublishedEvent, **context: str) -> bool:
        """Publish an event to a store's room.

        Args:
            tenant_id: Store whose room receives the event
            event: Event to publish
            context: Extra key-values for logging (e.g. order_id)

        Returns:
            True if published successfully, False otherwise
        """
        topic = room_topic(tenant_id)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self._hub_url,
                    data={
                        "topic": topic,
                        "data": event.model_dump_json(by_alias=True),
                    },
                    headers={
                        "Authorization": f"Bearer {self._create_jwt()}",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
                response.raise_for_status()

                logger.info("Published to Mercure", topic=topic, event_type=event.type, **context)
                return True

            except httpx.HTTPStatusError as e:
                logger.error(
                    "Failed to publish to Mercure",
                    status_code=e.response.status_code,
                    topic=topic,
                    event_type=event.type,
                    **context,
                )
                return False
            except httpx.RequestError as e:
                logger.error(
                    "Failed to connect to Mercure",
                    error=str(e) or type(e).__name__,
                    topic=topic,
                    event_type=event.type,
                    **context,
                )
                return False

    async def publish_order_created(self, tenant_id: str, order: Order) -> bool:
        return await self._publish(tenant_id, OrderCreatedEvent(order=order), order_id=order.id)

    async def publish_order_updated(self, tenant_id: str, order: Order) -> bool:
        """Publish the full authoritative order after any change."""
        return await self._publish(tenant_id, OrderUpdatedEvent(order=order), order_id=order.id)

    async def publish_order_deleted(self, tenant_id: str, order_id: str) -> bool:
        return await self._publish(tenant_id, OrderDeletedEvent(order_id=order_id), order_id=order_id)

    async def publish_orders_invalidated(self, tenant_id: str) -> bool:
        """Tell every viewer of the store to re-fetch its order list."""
        return await self._publish(tenant_id, OrdersInvalidatedEvent())
