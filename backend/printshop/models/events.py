"""Sync channel event schemas - shared contract with the storefront hub."""

from enum import StrEnum
from typing import Annotated, ClassVar, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from printshop.models.order import Order
from printshop.services.exceptions import InvalidStatus

logger = structlog.get_logger(__name__)


class EventKind(StrEnum):
    """Kinds of order events delivered to channel listeners."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    INVALIDATE_ALL = "invalidate_all"


class _ChannelEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: ClassVar[EventKind]


class OrderCreatedEvent(_ChannelEvent):
    """Event sent when an order is submitted."""

    type: Literal["order_created"] = "order_created"
    kind: ClassVar[EventKind] = EventKind.CREATED
    order: Order


class OrderUpdatedEvent(_ChannelEvent):
    """Event sent when an order changes. Carries the full authoritative order."""

    # order_status_updated is the legacy name still sent by older servers
    type: Literal["order_updated", "order_status_updated"] = "order_updated"
    kind: ClassVar[EventKind] = EventKind.UPDATED
    order: Order


class OrderDeletedEvent(_ChannelEvent):
    """Event sent when an order is removed."""

    type: Literal["order_deleted"] = "order_deleted"
    kind: ClassVar[EventKind] = EventKind.DELETED
    order_id: str


class OrdersInvalidatedEvent(_ChannelEvent):
    """Event telling viewers to drop local state and re-fetch all orders."""

    type: Literal["orders_invalidated"] = "orders_invalidated"
    kind: ClassVar[EventKind] = EventKind.INVALIDATE_ALL


ChannelEvent = Annotated[
    OrderCreatedEvent | OrderUpdatedEvent | OrderDeletedEvent | OrdersInvalidatedEvent,
    Field(discriminator="type"),
]

_channel_event_adapter: TypeAdapter[ChannelEvent] = TypeAdapter(ChannelEvent)


def room_topic(tenant_id: str) -> str:
    """Hub topic for a store's order room."""
    return f"stores/{tenant_id}/orders"


def parse_channel_event(data: str | bytes) -> ChannelEvent | None:
    """Parse a raw channel payload.

    Returns None (and logs) for payloads that are not valid events, so one bad
    message never stops delivery of the ones after it.
    """
    try:
        return _channel_event_adapter.validate_json(data)
    except (ValidationError, InvalidStatus) as e:
        logger.warning("Dropping malformed channel event", error=str(e))
        return None
