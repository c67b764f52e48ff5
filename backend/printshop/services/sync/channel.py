"""Persistent order sync channel.

Connection lifecycle::

    DISCONNECTED -> CONNECTING -> CONNECTED -> RECONNECTING -> CONNECTED ...
                                                    |
                                                    +-> DISCONNECTED (attempts exhausted)

Reconnects use a fixed short delay. Once ``warn_after_attempts`` consecutive
attempts have failed, ``unavailable`` listeners receive a ``ChannelUnavailable``
warning and the viewer falls back to manual refresh; the channel keeps trying
until ``max_reconnect_attempts`` and then waits for ``reconnect()``.

Events are delivered in send order within one connection lifetime only. Every
new lifetime after the first is announced to ``reconnected`` listeners, which
must assume events were missed and resync.
"""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from enum import StrEnum
from types import TracebackType
from typing import Any, Self

import structlog

from printshop.config import settings
from printshop.models.enums import ChannelState
from printshop.models.events import EventKind, parse_channel_event
from printshop.services.exceptions import ChannelUnavailable, TransportError
from printshop.services.sync.transport import ChannelTransport, TransportMessage

logger = structlog.get_logger(__name__)

Handler = Callable[..., Awaitable[None] | None]


class LifecycleKind(StrEnum):
    """Connection lifecycle notifications."""

    CONNECTED = "connected"
    RECONNECTED = "reconnected"
    DISCONNECTED = "disconnected"  # handler(error: TransportError)
    UNAVAILABLE = "unavailable"  # handler(error: ChannelUnavailable)


LISTENER_KINDS = frozenset(EventKind) | frozenset(LifecycleKind)


class SyncChannel:
    """Room-scoped order event channel with reconnect handling.

    Usage:
        async with SyncChannel(MercureTransport(), endpoint) as channel:
            channel.on("updated", reconciler.apply_event)
            await channel.join(store_id)
    """

    def __init__(
        self,
        transport: ChannelTransport,
        endpoint: str | None = None,
        *,
        reconnect_delay: float | None = None,
        warn_after_attempts: int | None = None,
        max_reconnect_attempts: int | None = None,
    ) -> None:
        self._transport = transport
        self._endpoint = endpoint or settings.mercure_url
        self._reconnect_delay = settings.sync_reconnect_delay if reconnect_delay is None else reconnect_delay
        self._warn_after = warn_after_attempts or settings.sync_warn_after_attempts
        self._max_attempts = max_reconnect_attempts or settings.sync_max_reconnect_attempts

        self._state = ChannelState.DISCONNECTED
        self._last_error: str | None = None
        self._rooms: set[str] = set()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._runner: asyncio.Task[None] | None = None
        self._connected = asyncio.Event()
        self._lifetimes = 0

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.dispose()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ChannelState.CONNECTED

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def rooms(self) -> frozenset[str]:
        return frozenset(self._rooms)

    def on(self, kind: str, handler: Handler) -> Callable[[], None]:
        """Register a listener.

        Order event listeners (created, updated, deleted, invalidate_all)
        receive the parsed event. ``connected`` and ``reconnected`` listeners
        get no arguments; ``disconnected`` and ``unavailable`` listeners get
        the error. Coroutine functions are awaited; listeners run one at a
        time in delivery order.

        Returns:
            Callable that removes the listener
        """
        if kind not in LISTENER_KINDS:
            raise ValueError(f"Unknown channel event kind: {kind}")
        self._handlers[kind].append(handler)
        return lambda: self.off(kind, handler)

    def off(self, kind: str, handler: Handler) -> None:
        """Remove a listener. Removing an unknown listener is a no-op."""
        handlers = self._handlers.get(kind, [])
        if handler in handlers:
            handlers.remove(handler)

    async def connect(self) -> None:
        """Start the connection cycle in the background. No-op while it runs."""
        if self._runner is not None and not self._runner.done():
            return
        self._runner = asyncio.create_task(self._run(), name="sync-channel")

    async def reconnect(self) -> None:
        """Manually restart the connection cycle with a fresh attempt budget."""
        logger.info("Manual reconnect requested", state=self._state.value)
        await self._stop()
        await self.connect()

    async def dispose(self) -> None:
        """Cancel any pending reconnect and close the connection."""
        await self._stop()
        logger.debug("Sync channel disposed")

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until the channel is connected. Returns False on timeout."""
        try:
            async with asyncio.timeout(timeout):
                await self._connected.wait()
        except TimeoutError:
            return False
        return True

    async def join(self, room: str) -> None:
        """Join a tenant room. Joining an already joined room is a no-op."""
        if room in self._rooms:
            logger.debug("Room already joined", room=room)
            return
        self._rooms.add(room)
        logger.info("Joined room", room=room)
        if self.is_connected:
            await self._transport.join(room)

    async def leave(self, room: str) -> None:
        """Leave a tenant room. Leaving a room that was not joined is a no-op."""
        if room not in self._rooms:
            logger.debug("Room not joined", room=room)
            return
        self._rooms.discard(room)
        logger.info("Left room", room=room)
        if self.is_connected:
            await self._transport.leave(room)

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        logger.debug("Channel state changed", previous=self._state.value, state=state.value)
        self._state = state
        if state == ChannelState.CONNECTED:
            self._connected.set()
        else:
            self._connected.clear()

    async def _stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is not None and not runner.done():
            runner.cancel()
            try:
                await runner
            except asyncio.CancelledError:
                pass
        await self._transport.close()
        self._set_state(ChannelState.DISCONNECTED)

    async def _run(self) -> None:
        """Connect, deliver until the connection drops, then reconnect."""
        failures = 0
        self._set_state(ChannelState.RECONNECTING if self._lifetimes else ChannelState.CONNECTING)

        while True:
            subscribed = frozenset(self._rooms)
            try:
                await self._transport.connect(self._endpoint, subscribed)
            except TransportError as e:
                failures += 1
                self._last_error = str(e)
                logger.warning("Channel connection attempt failed", attempt=failures, error=str(e))

                if failures == self._warn_after:
                    await self._emit(
                        LifecycleKind.UNAVAILABLE,
                        ChannelUnavailable(f"Live updates unavailable: {e}", attempts=failures),
                    )
                if failures >= self._max_attempts:
                    logger.error("Giving up on channel connection", attempts=failures)
                    self._set_state(ChannelState.DISCONNECTED)
                    return

                self._set_state(ChannelState.RECONNECTING)
                await asyncio.sleep(self._reconnect_delay)
                continue

            await self._sync_rooms(subscribed)
            failures = 0
            self._last_error = None
            self._set_state(ChannelState.CONNECTED)
            self._lifetimes += 1
            logger.info("Channel connected", rooms=sorted(self._rooms), lifetime=self._lifetimes)
            await self._emit(LifecycleKind.RECONNECTED if self._lifetimes > 1 else LifecycleKind.CONNECTED)

            try:
                async for message in self._transport.messages():
                    await self._deliver(message)
            except TransportError as e:
                self._last_error = str(e)
                self._set_state(ChannelState.RECONNECTING)
                logger.warning("Channel connection lost", error=str(e))
                await self._transport.close()
                await self._emit(LifecycleKind.DISCONNECTED, e)
                await asyncio.sleep(self._reconnect_delay)
                continue

            # Transport closed deliberately
            self._set_state(ChannelState.DISCONNECTED)
            return

    async def _sync_rooms(self, subscribed: frozenset[str]) -> None:
        """Apply joins and leaves that arrived while the connection was opening."""
        current = set(subscribed)
        while current != self._rooms:
            for room in sorted(self._rooms - current):
                await self._transport.join(room)
                current.add(room)
            for room in sorted(current - self._rooms):
                await self._transport.leave(room)
                current.discard(room)

    async def _deliver(self, message: TransportMessage) -> None:
        event = parse_channel_event(message.data)
        if event is None:
            return
        logger.debug("Channel event received", kind=event.kind.value, event_id=message.id)
        await self._emit(event.kind, event)

    async def _emit(self, kind: str, *args: Any) -> None:
        for handler in list(self._handlers.get(kind, [])):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Channel listener failed", kind=kind)
