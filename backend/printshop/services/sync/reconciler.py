"""Local order list reconciliation.

The Reconciler owns a viewer's order list. Two kinds of writes reach it:

- optimistic status patches made by this viewer before the server confirms
  them (``apply_optimistic``), and
- authoritative order events from the sync channel or REST responses
  (``apply_event``).

Conflicts are resolved by authority, not by time: an authoritative update
replaces the local order wholesale, dropping any pending optimistic patch,
even one issued after the update was sent.
"""

import asyncio
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import structlog

from printshop.config import settings
from printshop.models.enums import SyncMode
from printshop.models.events import (
    ChannelEvent,
    OrderCreatedEvent,
    OrderDeletedEvent,
    OrdersInvalidatedEvent,
    OrderUpdatedEvent,
)
from printshop.models.order import Order
from printshop.models.status import OrderStatus, check_transition, normalize_status
from printshop.services.exceptions import ChannelUnavailable, OrderNotFound, OrdersApiError, TransportError
from printshop.services.external.orders_api import OrdersApiClient
from printshop.services.sync.channel import LifecycleKind, SyncChannel
from printshop.utils.datetime_utils import EPOCH, ensure_utc

logger = structlog.get_logger(__name__)

ChangeListener = Callable[[tuple[Order, ...]], None]
FocusListener = Callable[[str], None]


class Reconciler:
    """Single writer of a viewer's local order list."""

    def __init__(
        self,
        api: OrdersApiClient,
        *,
        store_id: str | None = None,
        owner_id: str | None = None,
        strict_transitions: bool | None = None,
    ) -> None:
        self._api = api
        self._store_id = store_id
        self._owner_id = owner_id
        self._strict = settings.strict_status_transitions if strict_transitions is None else strict_transitions

        self._orders: list[Order] = []
        # order_id -> status before the first unconfirmed optimistic patch
        self._pending: dict[str, OrderStatus] = {}
        self._focused_id: str | None = None
        self._channel_available = False
        self._fetch_failed = False
        self._last_error: str | None = None
        self._resync_task: asyncio.Task[bool] | None = None
        self._change_listeners: list[ChangeListener] = []
        self._focus_listeners: list[FocusListener] = []

    @property
    def orders(self) -> tuple[Order, ...]:
        return tuple(self._orders)

    @property
    def mode(self) -> SyncMode:
        if self._fetch_failed:
            return SyncMode.OFFLINE
        if not self._channel_available:
            return SyncMode.DEGRADED
        return SyncMode.LIVE

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def focused_order(self) -> Order | None:
        return self.get(self._focused_id) if self._focused_id else None

    def get(self, order_id: str) -> Order | None:
        return next((order for order in self._orders if order.id == order_id), None)

    def is_pending(self, order_id: str) -> bool:
        """Whether the order carries an optimistic patch awaiting confirmation."""
        return order_id in self._pending

    def on_change(self, listener: ChangeListener) -> None:
        """Call ``listener(orders)`` after every change to the local list."""
        self._change_listeners.append(listener)

    def on_focus_cleared(self, listener: FocusListener) -> None:
        """Call ``listener(order_id)`` when the focused order disappears."""
        self._focus_listeners.append(listener)

    def focus(self, order_id: str | None) -> None:
        """Mark the order currently open in the UI."""
        self._focused_id = order_id

    def bind(self, channel: SyncChannel) -> None:
        """Route a channel's order events and lifecycle notifications here."""
        channel.on(OrderCreatedEvent.kind, self.apply_event)
        channel.on(OrderUpdatedEvent.kind, self.apply_event)
        channel.on(OrderDeletedEvent.kind, self.apply_event)
        channel.on(OrdersInvalidatedEvent.kind, self.apply_event)
        channel.on(LifecycleKind.CONNECTED, self._on_connected)
        channel.on(LifecycleKind.RECONNECTED, self._on_reconnected)
        channel.on(LifecycleKind.DISCONNECTED, self._on_disconnected)
        channel.on(LifecycleKind.UNAVAILABLE, self._on_unavailable)

    def apply_optimistic(self, order_id: str, patch: Mapping[str, Any]) -> Order:
        """Apply a local status change ahead of server confirmation.

        Args:
            order_id: Order to patch
            patch: ``{"status": ...}``; no other field may be patched optimistically

        Returns:
            The patched local order

        Raises:
            ValueError: Patch touches fields other than status
            InvalidStatus: Status is not a known status
            OrderNotFound: Order is not in the local list
            InvalidTransition: Off-lifecycle transition in strict mode
        """
        extra = set(patch) - {"status"}
        if extra or "status" not in patch:
            raise ValueError(f"Optimistic writes only change status, got {sorted(patch)}")

        target = normalize_status(patch["status"])
        index = self._index_of(order_id)
        if index is None:
            raise OrderNotFound(order_id)

        current = self._orders[index]
        check_transition(current.status, target, strict=self._strict)

        self._pending.setdefault(order_id, current.status)
        patched = current.model_copy(update={"status": target})
        self._orders[index] = patched
        logger.debug("Applied optimistic status", order_id=order_id, status=target.value)
        self._changed()
        return patched

    def revert_optimistic(self, order_id: str) -> None:
        """Restore the status an order had before its unconfirmed patches."""
        previous = self._pending.pop(order_id, None)
        index = self._index_of(order_id)
        if previous is None or index is None:
            return
        self._orders[index] = self._orders[index].model_copy(update={"status": previous})
        logger.info("Reverted optimistic status", order_id=order_id, status=previous.value)
        self._changed()

    async def apply_event(self, event: ChannelEvent) -> None:
        """Merge an authoritative event into the local list."""
        match event:
            case OrderCreatedEvent(order=order):
                self._apply_created(order)
            case OrderUpdatedEvent(order=order):
                self._apply_updated(order)
            case OrderDeletedEvent(order_id=order_id):
                self._apply_deleted(order_id)
            case OrdersInvalidatedEvent():
                await self.resync()

    def _apply_created(self, order: Order) -> None:
        if not self._is_visible(order):
            return
        if self._index_of(order.id) is not None:
            logger.debug("Created order already present", order_id=order.id)
            return
        self._orders.insert(0, order)
        self._changed()

    def _apply_updated(self, order: Order) -> None:
        index = self._index_of(order.id)
        if index is None:
            logger.debug("Update for unknown order ignored", order_id=order.id)
            return

        optimistic_from = self._pending.pop(order.id, None)
        current = self._orders[index]
        if optimistic_from is not None and current.status != order.status:
            logger.info(
                "Optimistic status overridden by server",
                order_id=order.id,
                optimistic=current.status.value,
                authoritative=order.status.value,
            )
        if current == order:
            return

        self._orders[index] = order
        self._changed()

    def _apply_deleted(self, order_id: str) -> None:
        self._pending.pop(order_id, None)
        index = self._index_of(order_id)
        if index is not None:
            del self._orders[index]
            self._changed()
        if self._focused_id == order_id:
            self._clear_focus()

    async def resync(self) -> bool:
        """Replace local state with a fresh listing from the API.

        Concurrent callers share one in-flight fetch. On failure the last
        known good list stays in place and the mode switches to offline.

        Returns:
            True if the list was refreshed
        """
        if self._resync_task is None or self._resync_task.done():
            self._resync_task = asyncio.create_task(self._fetch_all(), name="reconciler:resync")
        return await asyncio.shield(self._resync_task)

    async def close(self) -> None:
        """Cancel an in-flight resync."""
        task, self._resync_task = self._resync_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _fetch_all(self) -> bool:
        try:
            fetched = await self._api.list_orders(store_id=self._store_id)
        except OrdersApiError as e:
            self._fetch_failed = True
            self._last_error = str(e)
            logger.warning("Resync failed, keeping last known orders", error=str(e), kept=len(self._orders))
            return False

        self._fetch_failed = False
        self._last_error = None
        self._pending.clear()
        self._orders = _newest_first(order for order in fetched if self._is_visible(order))
        logger.info("Resynced orders", count=len(self._orders), mode=self.mode.value)

        if self._focused_id is not None and self._index_of(self._focused_id) is None:
            self._clear_focus()
        self._changed()
        return True

    async def _on_connected(self) -> None:
        # Anything sent before the subscription opened was missed
        self._channel_available = True
        logger.info("Channel connected, resyncing")
        await self.resync()

    async def _on_reconnected(self) -> None:
        self._channel_available = True
        logger.info("Channel reconnected, resyncing")
        await self.resync()

    async def _on_disconnected(self, error: TransportError) -> None:
        self._channel_available = False
        self._last_error = str(error)

    async def _on_unavailable(self, error: ChannelUnavailable) -> None:
        self._channel_available = False
        self._last_error = str(error)
        logger.warning("Live updates unavailable, manual refresh only", error=str(error))

    def _index_of(self, order_id: str) -> int | None:
        return next((i for i, order in enumerate(self._orders) if order.id == order_id), None)

    def _is_visible(self, order: Order) -> bool:
        return self._owner_id is None or order.owner_id == self._owner_id

    def _clear_focus(self) -> None:
        order_id, self._focused_id = self._focused_id, None
        if order_id is None:
            return
        for listener in list(self._focus_listeners):
            listener(order_id)

    def _changed(self) -> None:
        snapshot = self.orders
        for listener in list(self._change_listeners):
            listener(snapshot)


def _newest_first(orders: Iterable[Order]) -> list[Order]:
    return sorted(orders, key=lambda order: ensure_utc(order.created_at) or EPOCH, reverse=True)
