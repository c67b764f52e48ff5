"""Order and FileSpec wire models.

The storefront API speaks camelCase and still carries some legacy field names
(``printType``, ``colorPages``, ``doubleSided``, ``_id``). Models accept both
the current and the legacy spelling and always serialize the current one.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from printshop.models.enums import BINDING_ALIASES, BindingType, PrintMode, SpecialPaper
from printshop.models.status import OrderStatus, coerce_status
from printshop.models.types import Money

logger = structlog.get_logger(__name__)


class WireModel(BaseModel):
    """Base for storefront payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Binding(WireModel):
    """Binding selection for one file."""

    needed: bool = False
    type: BindingType = BindingType.NONE

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> BindingType:
        if value is None:
            return BindingType.NONE
        if isinstance(value, str) and value in BINDING_ALIASES:
            return BINDING_ALIASES[value]
        try:
            return BindingType(value)
        except ValueError:
            logger.warning("Unknown binding type, using none", binding_type=value)
            return BindingType.NONE

    @property
    def applies(self) -> bool:
        """Whether a binding surcharge is charged."""
        return self.needed and self.type != BindingType.NONE


class FileSpec(WireModel):
    """Print configuration of one uploaded document."""

    copies: int = 1
    print_mode: PrintMode = Field(
        default=PrintMode.BLACK_AND_WHITE,
        validation_alias=AliasChoices("printMode", "printType", "print_mode"),
        serialization_alias="printMode",
    )
    # Only interpreted when print_mode is MIXED
    color_page_spec: str = Field(
        default="",
        validation_alias=AliasChoices("colorPageSpec", "colorPages", "color_page_spec"),
        serialization_alias="colorPageSpec",
    )
    page_count: int = 0  # 0 means unknown
    duplex: bool = Field(
        default=False,
        validation_alias=AliasChoices("duplex", "doubleSided"),
        serialization_alias="duplex",
    )
    special_paper: SpecialPaper = SpecialPaper.NONE
    binding: Binding = Field(default_factory=Binding)
    specific_requirements: str = ""

    # Upload metadata, used only to estimate page_count when it is unknown
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_file_metadata(cls, data: Any) -> Any:
        """Accept the storefront's nested ``file: {name, type, size}`` metadata."""
        if isinstance(data, dict) and isinstance(data.get("file"), dict):
            meta = data["file"]
            data = dict(data)
            data.setdefault("fileName", meta.get("name"))
            data.setdefault("fileSize", meta.get("size"))
            data.setdefault("mimeType", meta.get("type"))
        return data

    @field_validator("copies", mode="before")
    @classmethod
    def _coerce_copies(cls, value: Any) -> int:
        try:
            copies = int(value)
        except (TypeError, ValueError, OverflowError):
            return 1
        return max(copies, 1)

    @field_validator("page_count", mode="before")
    @classmethod
    def _coerce_page_count(cls, value: Any) -> int:
        try:
            count = int(value)
        except (TypeError, ValueError, OverflowError):
            return 0
        return max(count, 0)

    @field_validator("print_mode", mode="before")
    @classmethod
    def _coerce_print_mode(cls, value: Any) -> PrintMode:
        try:
            return PrintMode(value)
        except ValueError:
            logger.warning("Unknown print mode, using black and white", print_mode=value)
            return PrintMode.BLACK_AND_WHITE

    @field_validator("special_paper", mode="before")
    @classmethod
    def _coerce_special_paper(cls, value: Any) -> SpecialPaper:
        if value in (None, "", "normal"):
            return SpecialPaper.NONE
        try:
            return SpecialPaper(value)
        except ValueError:
            logger.warning("Unknown special paper, using none", special_paper=value)
            return SpecialPaper.NONE

    @field_validator("color_page_spec", mode="before")
    @classmethod
    def _coerce_color_page_spec(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("binding", mode="before")
    @classmethod
    def _coerce_binding(cls, value: Any) -> Any:
        return {} if value is None else value


class Order(WireModel):
    """Authoritative order snapshot as returned by the API or the sync channel."""

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    status: OrderStatus = OrderStatus.PENDING
    files: list[FileSpec] = Field(default_factory=list)
    total_price: Money = Decimal(0)
    owner_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("ownerId", "userId", "owner_id"),
        serialization_alias="ownerId",
    )
    store_id: str | None = None
    document_name: str | None = None
    customer_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> OrderStatus:
        return coerce_status(value)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("total_price", mode="before")
    @classmethod
    def _coerce_total_price(cls, value: Any) -> Any:
        return Decimal(0) if value is None else value
