"""Sync channel transports.

A transport owns one connection to the pub/sub hub. ``SyncChannel`` drives it
through ``connect`` / ``join`` / ``leave`` / ``close`` and consumes
``messages()`` until the connection ends. When the connection drops,
``messages()`` raises ``TransportError``; after ``close()`` it simply ends.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from typing import Protocol

import httpx
import jwt
import structlog

from printshop.config import settings
from printshop.models.events import room_topic
from printshop.services.exceptions import TransportError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransportMessage:
    """One message received from the hub."""

    data: str
    id: str | None = None
    event: str | None = None


class ChannelTransport(Protocol):
    """Connection to a room-based pub/sub hub."""

    async def connect(self, endpoint: str, rooms: Iterable[str]) -> None:
        """Open a connection subscribed to ``rooms``. Raises TransportError on failure."""
        ...

    async def join(self, room: str) -> None:
        """Start receiving events for ``room`` on the open connection."""
        ...

    async def leave(self, room: str) -> None:
        """Stop receiving events for ``room`` on the open connection."""
        ...

    def messages(self) -> AsyncIterator[TransportMessage]:
        """Messages in delivery order for the current connection lifetime."""
        ...

    async def close(self) -> None:
        """Close the connection. Safe to call when not connected."""
        ...


# Queue sentinel marking a deliberate close
_CLOSED = None


class MercureTransport:
    """Server-sent events subscriber for a Mercure hub.

    Rooms map to topics ``stores/{tenant_id}/orders``. Joining or leaving a
    room re-opens the subscription with the new topic set and the last seen
    event id, so the hub replays whatever was published in between and the
    switch does not count as a new connection lifetime.
    """

    def __init__(
        self,
        jwt_key: str | None = None,
        *,
        connect_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._jwt_key = settings.mercure_subscriber_jwt_key if jwt_key is None else jwt_key
        self._connect_timeout = settings.request_timeout if connect_timeout is None else connect_timeout
        self._http_transport = transport
        self._client: httpx.AsyncClient | None = None
        self._endpoint = ""
        self._rooms: set[str] = set()
        self._last_event_id: str | None = None
        self._queue: asyncio.Queue[TransportMessage | BaseException | None] = asyncio.Queue()
        self._reader: asyncio.Task[None] | None = None

    def _create_jwt(self) -> str:
        """Create a JWT granting subscription to the joined rooms' topics."""
        return jwt.encode(
            {"mercure": {"subscribe": sorted(room_topic(room) for room in self._rooms)}},
            self._jwt_key,
            algorithm="HS256",
        )

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if self._jwt_key:
            headers["Authorization"] = f"Bearer {self._create_jwt()}"
        if self._last_event_id:
            headers["Last-Event-ID"] = self._last_event_id
        return headers

    async def connect(self, endpoint: str, rooms: Iterable[str]) -> None:
        await self.close()
        self._endpoint = endpoint
        self._rooms = set(rooms)
        self._queue = asyncio.Queue()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._connect_timeout, read=None),
            transport=self._http_transport,
        )
        try:
            await self._subscribe()
        except TransportError:
            await self.close()
            raise

    async def join(self, room: str) -> None:
        if room in self._rooms:
            return
        self._rooms.add(room)
        await self._resubscribe()

    async def leave(self, room: str) -> None:
        if room not in self._rooms:
            return
        self._rooms.discard(room)
        await self._resubscribe()

    async def messages(self) -> AsyncIterator[TransportMessage]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                raise item
            yield item

    async def close(self) -> None:
        await self._stop_reader()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._queue.put_nowait(_CLOSED)

    async def _resubscribe(self) -> None:
        """Re-open the stream with the current rooms. Failures end the connection."""
        if self._client is None:
            return
        await self._stop_reader()
        try:
            await self._subscribe()
        except TransportError as e:
            self._queue.put_nowait(e)

    async def _subscribe(self) -> None:
        """Open the SSE stream and start the reader task.

        A hub subscription needs at least one topic; with no rooms the
        connection stays open but idle.
        """
        assert self._client is not None
        if not self._rooms:
            return

        request = self._client.build_request(
            "GET",
            self._endpoint,
            params=[("topic", room_topic(room)) for room in sorted(self._rooms)],
            headers=self._get_headers(),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as e:
            raise TransportError(f"Cannot reach hub: {type(e).__name__}") from e

        if response.status_code != httpx.codes.OK:
            await response.aclose()
            raise TransportError(f"Hub refused subscription with {response.status_code}")

        logger.debug("Subscribed to hub", rooms=sorted(self._rooms), last_event_id=self._last_event_id)
        self._reader = asyncio.create_task(self._read(response), name="mercure:reader")

    async def _stop_reader(self) -> None:
        if self._reader is None:
            return
        reader, self._reader = self._reader, None
        if not reader.done():
            reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass

    async def _read(self, response: httpx.Response) -> None:
        """Parse the event stream into messages until it ends."""
        data_lines: list[str] = []
        event_id: str | None = None
        event_name: str | None = None
        try:
            async for line in response.aiter_lines():
                if not line:
                    if data_lines:
                        if event_id is not None:
                            self._last_event_id = event_id
                        self._queue.put_nowait(
                            TransportMessage(data="\n".join(data_lines), id=event_id, event=event_name)
                        )
                    data_lines, event_id, event_name = [], None, None
                    continue
                if line.startswith(":"):
                    continue  # heartbeat

                field, _, value = line.partition(":")
                if value.startswith(" "):
                    value = value[1:]
                if field == "data":
                    data_lines.append(value)
                elif field == "id":
                    event_id = value
                elif field == "event":
                    event_name = value

            self._queue.put_nowait(TransportError("Hub closed the stream"))
        except httpx.HTTPError as e:
            self._queue.put_nowait(TransportError(f"Stream failed: {type(e).__name__}"))
        finally:
            await response.aclose()
