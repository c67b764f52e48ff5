"""Order submission and status change orchestration.

Every write follows the same path: local state first (priced and corrected
files, or an optimistic status), then the REST call, then the server's answer
applied to the Reconciler as an authoritative event.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from printshop.models.enums import PrintMode
from printshop.models.events import OrderCreatedEvent, OrderDeletedEvent, OrderUpdatedEvent
from printshop.models.order import FileSpec, Order
from printshop.models.pricing import PricingTable, resolve_pricing_table
from printshop.models.status import OrderStatus, normalize_status
from printshop.services.exceptions import OrderNotFound, OrdersApiError
from printshop.services.external.orders_api import OrdersApiClient
from printshop.services.pricing.page_ranges import correct_page_spec
from printshop.services.pricing.pricing_service import PricingTableInput, effective_page_count, price_order
from printshop.services.sync.reconciler import Reconciler

logger = structlog.get_logger(__name__)


class OrderService:
    """Write operations on orders for one viewer."""

    def __init__(
        self,
        api: OrdersApiClient,
        reconciler: Reconciler,
        *,
        pricing_table: PricingTableInput = None,
    ) -> None:
        self._api = api
        self._reconciler = reconciler
        self._pricing: PricingTable = resolve_pricing_table(pricing_table)

    async def submit_order(
        self,
        store_id: str,
        document_name: str,
        files: Iterable[FileSpec | Mapping[str, Any]],
        *,
        description: str = "",
    ) -> Order:
        """Price and submit a new order.

        Mixed-mode color page specs are corrected against the known page count
        before pricing, so the submitted spec and the submitted price agree.

        Args:
            store_id: Store receiving the order
            document_name: Display name of the order
            files: File specs (models or storefront dicts)
            description: Free-form note for the print shop

        Returns:
            The order as created by the server

        Raises:
            OrdersApiError: The order could not be submitted
        """
        specs = [_correct_color_pages(FileSpec.model_validate(spec)) for spec in files]
        total = price_order(specs, self._pricing)

        payload = {
            "storeId": store_id,
            "documentName": document_name,
            "description": description,
            "files": [spec.model_dump(mode="json", by_alias=True) for spec in specs],
            "totalPrice": float(total),
            "status": OrderStatus.default().value,
        }
        order = await self._api.create_order(payload)
        logger.info("Order submitted", order_id=order.id, store_id=store_id, files=len(specs), total=str(total))

        await self._reconciler.apply_event(OrderCreatedEvent(order=order))
        return order

    async def change_status(self, order_id: str, status: object) -> Order:
        """Change an order's status optimistically and confirm it with the server.

        Raises:
            InvalidStatus: Unknown status; nothing is changed
            OrderNotFound: The order is gone; it is removed locally
            OrdersApiError: The update failed; the optimistic status is reverted
                and the list is re-fetched
        """
        target = normalize_status(status)
        self._reconciler.apply_optimistic(order_id, {"status": target})

        try:
            order = await self._api.update_order(order_id, {"status": target.value})
        except OrderNotFound:
            logger.warning("Order vanished during status change", order_id=order_id)
            self._reconciler.revert_optimistic(order_id)
            await self._reconciler.apply_event(OrderDeletedEvent(order_id=order_id))
            raise
        except OrdersApiError as e:
            logger.error("Status change failed", order_id=order_id, status=target.value, error=str(e))
            self._reconciler.revert_optimistic(order_id)
            await self._reconciler.resync()
            raise

        await self._reconciler.apply_event(OrderUpdatedEvent(order=order))
        return order


def _correct_color_pages(spec: FileSpec) -> FileSpec:
    if spec.print_mode != PrintMode.MIXED:
        return spec
    pages, estimated = effective_page_count(spec)
    if estimated:
        return spec

    corrected = correct_page_spec(spec.color_page_spec, pages)
    if corrected == spec.color_page_spec:
        return spec
    logger.info(
        "Corrected color pages",
        file_name=spec.file_name,
        color_page_spec=spec.color_page_spec,
        corrected=corrected,
        page_count=pages,
    )
    return spec.model_copy(update={"color_page_spec": corrected})
