"""Wire models, enums and the order status machine."""

from printshop.models.enums import BindingType, ChannelState, PrintMode, SpecialPaper, SyncMode
from printshop.models.order import Binding, FileSpec, Order
from printshop.models.pricing import DEFAULT_PRICING_TABLE, Price, PricingTable
from printshop.models.status import OrderStatus

__all__ = [
    "Order",
    "FileSpec",
    "Binding",
    "OrderStatus",
    "PrintMode",
    "SpecialPaper",
    "BindingType",
    "ChannelState",
    "SyncMode",
    "PricingTable",
    "Price",
    "DEFAULT_PRICING_TABLE",
]
