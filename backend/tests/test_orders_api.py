"""
Unit tests for the storefront orders API client.
"""

import json

import httpx
import pytest

from printshop.models.status import OrderStatus
from printshop.services.exceptions import OrderNotFound, OrdersApiError
from printshop.services.external.orders_api import OrdersApiClient
from printshop.utils.request_retry import RequestRetryConfig

BASE_URL = "http://storefront.test/api"


def make_client(handler, **kwargs):
    return OrdersApiClient(
        BASE_URL,
        token=kwargs.pop("token", "secret"),
        retry=RequestRetryConfig(max_attempts=2, wait=0),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestListOrders:
    """Tests for list_orders()."""

    async def test_bare_list(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[{"_id": "a", "status": "pending"}, {"id": "b", "status": "Shipped"}])

        orders = await make_client(handler).list_orders(store_id="s1")

        assert [o.id for o in orders] == ["a", "b"]
        assert orders[1].status is OrderStatus.SHIPPED
        assert requests[0].url.path == "/api/orders"
        assert requests[0].url.params["storeId"] == "s1"
        assert requests[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.parametrize(
        "body",
        [
            {"orders": [{"id": "a"}]},
            {"success": True, "data": [{"id": "a", "status": "Pending"}]},
        ],
    )
    async def test_envelopes(self, body):
        orders = await make_client(lambda request: httpx.Response(200, json=body)).list_orders()

        assert [o.id for o in orders] == ["a"]

    async def test_invalid_orders_skipped(self):
        body = [{"id": "a"}, {"id": "b", "status": "teleported"}, {"status": "Pending"}]

        orders = await make_client(lambda request: httpx.Response(200, json=body)).list_orders()

        assert [o.id for o in orders] == ["a"]

    async def test_unrecognized_body_is_empty(self):
        orders = await make_client(lambda request: httpx.Response(200, json={"message": "ok"})).list_orders()

        assert orders == []


class TestErrors:
    """Tests for error mapping and retries."""

    async def test_not_found(self):
        with pytest.raises(OrderNotFound):
            await make_client(lambda request: httpx.Response(404)).get_order("x")

    async def test_server_error(self):
        with pytest.raises(OrdersApiError) as exc_info:
            await make_client(lambda request: httpx.Response(503)).list_orders()

        assert exc_info.value.status_code == 503

    async def test_server_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(OrdersApiError):
            await make_client(handler).list_orders()

        assert len(calls) == 1

    async def test_network_error_retried_then_raised(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(OrdersApiError):
            await make_client(handler).list_orders()

        assert len(calls) == 2

    async def test_network_error_recovers_on_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json=[{"id": "a"}])

        orders = await make_client(handler).list_orders()

        assert [o.id for o in orders] == ["a"]

    async def test_invalid_json(self):
        with pytest.raises(OrdersApiError):
            await make_client(lambda request: httpx.Response(200, content=b"<html>")).list_orders()

    async def test_invalid_order_in_response(self):
        with pytest.raises(OrdersApiError):
            await make_client(lambda request: httpx.Response(200, json={"id": "a", "status": "??"})).get_order("a")


class TestWrites:
    """Tests for update_order() and create_order()."""

    async def test_update_order(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"order": {"id": "a", "status": "Shipped"}})

        order = await make_client(handler).update_order("a", {"status": "Shipped"})

        assert order.status is OrderStatus.SHIPPED
        assert requests[0].method == "PUT"
        assert requests[0].url.path == "/api/orders/a"
        assert json.loads(requests[0].content) == {"status": "Shipped"}

    async def test_create_order(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"_id": "new", **json.loads(request.content)})

        order = await make_client(handler, token="").create_order({"storeId": "s1", "status": "Pending"})

        assert order.id == "new"
        assert order.store_id == "s1"
        assert requests[0].method == "POST"
        assert "Authorization" not in requests[0].headers
