"""Order status machine with flag-based metadata.

Statuses are declared with combinable flags and their nominal successors:

    PENDING = Status("Pending", Flags.INITIAL, next=("Processing", "Cancelled"))

The lifecycle is advisory. Staff may move an order from any status to any
other, so ``check_transition`` only reports (and logs) departures from the
nominal graph unless strict mode is switched on.
"""

import re
from dataclasses import dataclass
from enum import IntFlag, StrEnum, auto

import structlog

from printshop.services.exceptions import InvalidStatus, InvalidTransition

logger = structlog.get_logger(__name__)


class Flags(IntFlag):
    """Order status metadata flags.

    Flags:
        INITIAL - Status assigned when an order is created without one
        ACTIVE  - Order is being worked on by the store
        FINAL   - Terminal for lifecycle purposes
    """

    NONE = 0
    INITIAL = auto()
    ACTIVE = auto()
    FINAL = auto()


@dataclass(frozen=True)
class FlagRule:
    """Flags that may not accompany ``when``."""

    when: Flags
    forbidden: Flags

    def __post_init__(self) -> None:
        if self.when == Flags.NONE:
            raise ValueError("when may not be empty")


FLAG_RULES: tuple[FlagRule, ...] = (
    FlagRule(when=Flags.FINAL, forbidden=Flags.INITIAL | Flags.ACTIVE),
    # Nothing has started on a new order
    FlagRule(when=Flags.INITIAL, forbidden=Flags.ACTIVE),
)


def validate_flags(value: Flags) -> None:
    """Reject flag combinations that contradict each other."""
    for rule in FLAG_RULES:
        if value & rule.when and value & rule.forbidden:
            clash = value & rule.forbidden
            raise ValueError(f"{rule.when.name} status cannot also be {clash.name}")


@dataclass(frozen=True, slots=True)
class Status:
    """Status definition with wire value, flags, and nominal successors."""

    value: str
    flags: Flags = Flags.NONE
    next: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        validate_flags(self.flags)
        if self.flags & Flags.FINAL and self.next:
            raise ValueError(f"Final status {self.value} cannot have successors")

    @property
    def is_initial(self) -> bool:
        return bool(self.flags & Flags.INITIAL)

    @property
    def is_active(self) -> bool:
        return bool(self.flags & Flags.ACTIVE)

    @property
    def is_final(self) -> bool:
        return bool(self.flags & Flags.FINAL)


# Status metadata keyed by wire value
_status_registry: dict[str, Status] = {}


class OrderStatus(StrEnum):
    """Order status. Values are the canonical capitalized wire form."""

    def __new__(cls, status: Status | str) -> "OrderStatus":
        if isinstance(status, Status):
            value = status.value
            _status_registry[value] = status
        else:
            value = status

        obj = str.__new__(cls, value)
        obj._value_ = value
        return obj

    PENDING = Status("Pending", Flags.INITIAL, next=("Processing", "Cancelled"))
    PROCESSING = Status("Processing", Flags.ACTIVE, next=("Shipped", "Completed", "Cancelled"))
    SHIPPED = Status("Shipped", Flags.ACTIVE, next=("Delivered", "Cancelled"))
    DELIVERED = Status("Delivered", Flags.FINAL)
    CANCELLED = Status("Cancelled", Flags.FINAL)
    COMPLETED = Status("Completed", Flags.FINAL)

    @property
    def meta(self) -> Status:
        """Get metadata for this status."""
        return _status_registry.get(self._value_, Status(self._value_))

    @property
    def allowed_transitions(self) -> "frozenset[OrderStatus]":
        """Nominal successors of this status."""
        return frozenset(OrderStatus(value) for value in self.meta.next)

    @classmethod
    def default(cls) -> "OrderStatus":
        """Status assigned to an order created without one."""
        return next(s for s in cls if s.meta.is_initial)

    @classmethod
    def final_states(cls) -> "frozenset[OrderStatus]":
        """Terminal statuses (FINAL flag)."""
        return frozenset(s for s in cls if s.meta.is_final)

    @classmethod
    def active_states(cls) -> "frozenset[OrderStatus]":
        """Statuses where the store is working on the order (ACTIVE flag)."""
        return frozenset(s for s in cls if s.meta.is_active)


_WHITESPACE_RE = re.compile(r"\s+")

# Lookup by folded token: "pending" -> OrderStatus.PENDING
_STATUS_BY_TOKEN: dict[str, OrderStatus] = {s.value.lower(): s for s in OrderStatus}


def normalize_status(value: object) -> OrderStatus:
    """Map a user or wire supplied status string to its canonical form.

    Matching is case-insensitive and ignores all whitespace, so
    ``" in Progress"`` style typos are folded before lookup.

    Raises:
        InvalidStatus: If the folded token is not a known status
    """
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        raise InvalidStatus(value)

    token = _WHITESPACE_RE.sub("", value).lower()
    status = _STATUS_BY_TOKEN.get(token)
    if status is None:
        raise InvalidStatus(value)
    return status


def coerce_status(value: object) -> OrderStatus:
    """Normalize a status at object-creation time.

    A missing or blank status becomes the default (Pending). Anything else
    must normalize cleanly.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return OrderStatus.default()
    return normalize_status(value)


def check_transition(current: OrderStatus, target: OrderStatus, *, strict: bool = False) -> bool:
    """Check a transition against the nominal lifecycle.

    Args:
        current: Status the order is in now
        target: Requested status
        strict: Raise instead of logging when the transition is off-lifecycle

    Returns:
        True if the transition is nominal (or a no-op), False otherwise

    Raises:
        InvalidTransition: Only in strict mode, for off-lifecycle transitions
    """
    if current == target or target in current.allowed_transitions:
        return True

    if strict:
        raise InvalidTransition(current.value, target.value)

    logger.warning(
        "Off-lifecycle status transition",
        current=current.value,
        target=target.value,
    )
    return False
