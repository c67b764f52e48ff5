"""Base service exceptions.

Parsing and pricing never raise: malformed page tokens are dropped and
out-of-range pages surface as an ``OutOfRangePages`` warning value. Status and
transport problems are raised as the exceptions below and caught at the seams
that own the recovery (OrderService, SyncChannel, Reconciler).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class OutOfRangePages:
    """Warning: a page spec references pages beyond the document's page count.

    Attributes:
        pages: Referenced pages greater than page_count, ascending
        page_count: Known page count of the document
        corrected_spec: Page spec re-derived from the in-range pages only
    """

    pages: tuple[int, ...]
    page_count: int
    corrected_spec: str

    def __str__(self) -> str:
        return (
            f"Page {self.pages[-1]} exceeds the document's total page count ({self.page_count})"
            if self.pages
            else f"All pages are within the page count ({self.page_count})"
        )


class ServiceError(Exception):
    """Base service exception."""

    pass


class NotFoundError(ServiceError):
    """Resource not found."""

    pass


class ValidationError(ServiceError):
    """Validation error."""

    pass


class InvalidStatus(ValidationError):
    """Status string is not one of the known order statuses."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid order status: {value!r}")


class InvalidTransition(ValidationError):
    """Status transition outside the nominal lifecycle (strict mode only)."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transition {current} -> {target} is not allowed")


class OrderNotFound(NotFoundError):
    """Order not found."""

    pass


class OrdersApiError(ServiceError):
    """Storefront REST call failed (timeout, network error, or HTTP error status)."""

    def __init__(self, message: str, *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class ChannelUnavailable(ServiceError):
    """Sync channel could not be (re)established.

    Never raised out of the channel: it is stored as ``last_error`` and handed to
    ``unavailable`` listeners so the viewer can fall back to manual refresh.
    """

    def __init__(self, message: str, *, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class TransportError(ServiceError):
    """Low-level transport failure (connection refused, stream closed)."""

    pass
