"""Print pricing.

Price of one file::

    base     = (bw_pages * bw_rate + color_pages * color_rate) * copies
    paper    = paper_rate * pages * copies
    binding  = binding_rate                      (once per file)
    total    = base + paper + binding

Rates are picked by duplex. Pricing sits on the order-submission path and
never raises: unknown options were already coerced to their no-op values by
``FileSpec`` and a bad store table falls back to the default table.
"""

import math
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

import structlog

from printshop.models.enums import PrintMode
from printshop.models.order import FileSpec
from printshop.models.pricing import Price, PricingTable, resolve_pricing_table
from printshop.services.pricing.page_ranges import check_page_spec, parse, validate_against_page_count

logger = structlog.get_logger(__name__)

DEFAULT_BYTES_PER_PAGE = 100 * 1024

# Average document bytes per printed page, keyed by MIME type
AVERAGE_BYTES_PER_PAGE: dict[str, int] = {
    "application/pdf": 100 * 1024,
    "application/msword": 50 * 1024,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": 25 * 1024,
    "application/vnd.ms-powerpoint": 250 * 1024,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": 250 * 1024,
    "text/plain": 3 * 1024,
}

PricingTableInput = PricingTable | Mapping[str, Any] | None


def estimate_page_count(file_size: int | None, mime_type: str | None = None) -> int:
    """Estimate a document's page count from its size.

    The estimate is advisory: it is only used when the real page count is
    unknown, and it is never less than one page.
    """
    if mime_type and mime_type.startswith("image/"):
        return 1
    if not file_size or file_size <= 0:
        return 1

    bytes_per_page = AVERAGE_BYTES_PER_PAGE.get(mime_type or "", DEFAULT_BYTES_PER_PAGE)
    return max(1, math.ceil(file_size / bytes_per_page))


def effective_page_count(spec: FileSpec) -> tuple[int, bool]:
    """Return (pages, estimated) for a file spec."""
    if spec.page_count > 0:
        return spec.page_count, False
    return estimate_page_count(spec.file_size, spec.mime_type), True


def price_file(spec: FileSpec, table: PricingTableInput = None) -> Price:
    """Compute the price breakdown of one file.

    Args:
        spec: Print configuration of the file
        table: Store pricing table (partial tables fall back to defaults)

    Returns:
        Price breakdown with the total and, for mixed mode, an optional
        out-of-range warning carrying the auto-corrected color page spec
    """
    rates = resolve_pricing_table(table)
    pages, estimated = effective_page_count(spec)
    copies = spec.copies

    warning = None
    if spec.print_mode == PrintMode.MIXED:
        color_pages = len(validate_against_page_count(parse(spec.color_page_spec), pages).valid)
        bw_pages = pages - color_pages
        base = (
            bw_pages * rates.page_rate(PrintMode.BLACK_AND_WHITE, spec.duplex)
            + color_pages * rates.page_rate(PrintMode.COLOR, spec.duplex)
        )
        if not estimated:
            warning = check_page_spec(spec.color_page_spec, pages)
    else:
        color_pages = pages if spec.print_mode == PrintMode.COLOR else 0
        bw_pages = pages - color_pages
        base = pages * rates.page_rate(spec.print_mode, spec.duplex)

    base *= copies
    paper_surcharge = rates.paper_rate(spec.special_paper) * pages * copies
    binding_surcharge = rates.binding_rate(spec.binding.type) if spec.binding.applies else Decimal(0)
    total = base + paper_surcharge + binding_surcharge

    if warning is not None:
        logger.info(
            "Color pages out of range",
            invalid_pages=list(warning.pages),
            page_count=pages,
            corrected_spec=warning.corrected_spec,
        )

    return Price(
        pages=pages,
        color_pages=color_pages,
        bw_pages=bw_pages,
        page_count_estimated=estimated,
        base=base,
        paper_surcharge=paper_surcharge,
        binding_surcharge=binding_surcharge,
        total=total,
        warning=warning,
    )


def price_order(files: Iterable[FileSpec], table: PricingTableInput = None) -> Decimal:
    """Total price of an order: the sum of its files' prices."""
    rates = resolve_pricing_table(table)
    return sum((price_file(spec, rates).total for spec in files), Decimal(0))
