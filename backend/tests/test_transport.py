"""
Unit tests for the Mercure SSE subscriber transport.
"""

import httpx
import jwt
import pytest

from printshop.services.exceptions import TransportError
from printshop.services.sync.transport import MercureTransport

HUB_URL = "http://hub.test/.well-known/mercure"
JWT_KEY = "subscriber-secret-key-for-tests-0123456789"

STREAM = (
    b": connected\n\n"
    b"id: ev-1\n"
    b'data: {"type": "orders_invalidated"}\n\n'
    b"id: ev-2\n"
    b"event: message\n"
    b'data: {"type": "order_deleted",\n'
    b'data: "order_id": "9"}\n\n'
)


class TestMercureTransport:
    """Tests for MercureTransport."""

    async def test_parses_event_stream(self):
        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(lambda r: httpx.Response(200, content=STREAM)))
        await transport.connect(HUB_URL, ["s1"])

        received = []
        with pytest.raises(TransportError):
            async for message in transport.messages():
                received.append(message)

        assert [m.id for m in received] == ["ev-1", "ev-2"]
        assert received[0].data == '{"type": "orders_invalidated"}'
        assert received[1].data == '{"type": "order_deleted",\n"order_id": "9"}'
        assert received[1].event == "message"
        await transport.close()

    async def test_subscription_request(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=b"")

        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(handler))
        await transport.connect(HUB_URL, ["s2", "s1"])
        await transport.close()

        request = requests[0]
        assert request.url.params.get_list("topic") == ["stores/s1/orders", "stores/s2/orders"]
        assert request.headers["Accept"] == "text/event-stream"
        token = request.headers["Authorization"].removeprefix("Bearer ")
        claims = jwt.decode(token, JWT_KEY, algorithms=["HS256"])
        assert claims["mercure"]["subscribe"] == ["stores/s1/orders", "stores/s2/orders"]

    async def test_join_resubscribes_with_last_event_id(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, content=b'id: ev-7\ndata: {"type": "orders_invalidated"}\n\n')

        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(handler))
        await transport.connect(HUB_URL, ["s1"])
        messages = transport.messages()
        first = await anext(messages)
        await transport.join("s2")
        await messages.aclose()
        await transport.close()

        assert first.id == "ev-7"
        assert len(requests) == 2
        assert "Last-Event-ID" not in requests[0].headers
        assert requests[1].headers["Last-Event-ID"] == "ev-7"
        assert requests[1].url.params.get_list("topic") == ["stores/s1/orders", "stores/s2/orders"]

    async def test_no_rooms_stays_idle(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200)

        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(handler))
        await transport.connect(HUB_URL, [])
        await transport.close()

        assert requests == []

    async def test_refused_subscription(self):
        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(lambda r: httpx.Response(401)))

        with pytest.raises(TransportError, match="401"):
            await transport.connect(HUB_URL, ["s1"])

    async def test_unreachable_hub(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(handler))

        with pytest.raises(TransportError):
            await transport.connect(HUB_URL, ["s1"])

    async def test_close_ends_messages(self):
        transport = MercureTransport(JWT_KEY, transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        await transport.connect(HUB_URL, [])
        await transport.close()

        assert [message async for message in transport.messages()] == []
