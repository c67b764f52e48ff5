"""Pricing table and price breakdown models.

Defaults live on the models themselves, so a store table that only overrides a
few entries validates into a complete table with every other entry taken from
the default price list.
"""

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError, model_validator

from printshop.models.enums import BindingType, PrintMode, SpecialPaper
from printshop.models.types import Money
from printshop.services.exceptions import OutOfRangePages

logger = structlog.get_logger(__name__)

Rate = Decimal


class _Rates(BaseModel):
    """Rate section; explicit nulls fall back to the section default."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {key: value for key, value in data.items() if value is not None}
        return data


class BlackAndWhiteRates(_Rates):
    single: Rate = Field(default=Decimal(2), ge=0, validation_alias=AliasChoices("single", "singleSided"))
    double: Rate = Field(default=Decimal(3), ge=0, validation_alias=AliasChoices("double", "doubleSided"))


class ColorRates(_Rates):
    single: Rate = Field(default=Decimal(5), ge=0, validation_alias=AliasChoices("single", "singleSided"))
    double: Rate = Field(default=Decimal(8), ge=0, validation_alias=AliasChoices("double", "doubleSided"))


class PaperRates(_Rates):
    """Per-page surcharge for special paper."""

    glossy: Rate = Field(default=Decimal(5), ge=0)
    matte: Rate = Field(default=Decimal(7), ge=0)
    transparent: Rate = Field(default=Decimal(10), ge=0)


class BindingRates(_Rates):
    """Per-file binding surcharge."""

    spiral: Rate = Field(default=Decimal(25), ge=0, validation_alias=AliasChoices("spiral", "spiralBinding"))
    staple: Rate = Field(default=Decimal(10), ge=0, validation_alias=AliasChoices("staple", "staplingBinding"))
    hardcover: Rate = Field(default=Decimal(50), ge=0, validation_alias=AliasChoices("hardcover", "hardcoverBinding"))


class PricingTable(_Rates):
    """Store-scoped unit prices for every print option."""

    bw: BlackAndWhiteRates = Field(
        default_factory=BlackAndWhiteRates,
        validation_alias=AliasChoices("bw", "blackAndWhite"),
    )
    color: ColorRates = Field(default_factory=ColorRates)
    paper: PaperRates = Field(default_factory=PaperRates, validation_alias=AliasChoices("paper", "paperTypes"))
    binding: BindingRates = Field(default_factory=BindingRates)

    def page_rate(self, print_mode: PrintMode, duplex: bool) -> Decimal:
        """Unit price of one printed page.

        Mixed mode has no single page rate; callers price its color and black
        and white pages separately.
        """
        rates: BlackAndWhiteRates | ColorRates = self.color if print_mode == PrintMode.COLOR else self.bw
        return rates.double if duplex else rates.single

    def paper_rate(self, paper: SpecialPaper) -> Decimal:
        """Per-page surcharge for a paper stock (0 for plain paper)."""
        if paper == SpecialPaper.NONE:
            return Decimal(0)
        return getattr(self.paper, paper.value, Decimal(0))

    def binding_rate(self, binding_type: BindingType) -> Decimal:
        """Per-file surcharge for a binding type (0 for none)."""
        if binding_type == BindingType.NONE:
            return Decimal(0)
        return getattr(self.binding, binding_type.value, Decimal(0))


DEFAULT_PRICING_TABLE = PricingTable()


def resolve_pricing_table(store_pricing: PricingTable | Mapping[str, Any] | None) -> PricingTable:
    """Build the effective pricing table for a store.

    Missing entries fall back to the default price list one by one. A table
    that cannot be validated at all is replaced by the default table, since
    pricing must never block an order submission.
    """
    if store_pricing is None:
        return DEFAULT_PRICING_TABLE
    if isinstance(store_pricing, PricingTable):
        return store_pricing

    try:
        return PricingTable.model_validate(store_pricing)
    except ValidationError as e:
        logger.warning(
            "Invalid store pricing table, using defaults",
            errors=e.error_count(),
        )
        return DEFAULT_PRICING_TABLE


class Price(BaseModel):
    """Price breakdown for one file."""

    model_config = ConfigDict(frozen=True)

    pages: NonNegativeInt
    color_pages: NonNegativeInt = 0
    bw_pages: NonNegativeInt = 0
    page_count_estimated: bool = False
    base: Money = Decimal(0)
    paper_surcharge: Money = Decimal(0)
    binding_surcharge: Money = Decimal(0)
    total: Money = Decimal(0)
    warning: OutOfRangePages | None = None
