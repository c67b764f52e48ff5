"""Enum definitions for print options and sync state."""

from enum import StrEnum


class PrintMode(StrEnum):
    """How a file's pages are printed."""

    BLACK_AND_WHITE = "blackAndWhite"
    COLOR = "color"
    MIXED = "mixed"  # Color pages selected by a page-range string, rest black and white


class SpecialPaper(StrEnum):
    """Special paper stock, charged per printed page."""

    NONE = "none"
    GLOSSY = "glossy"
    MATTE = "matte"
    TRANSPARENT = "transparent"


class BindingType(StrEnum):
    """Binding applied once per file."""

    NONE = "none"
    SPIRAL = "spiral"
    STAPLE = "staple"
    HARDCOVER = "hardcover"


class ChannelState(StrEnum):
    """Connection state of the sync channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class SyncMode(StrEnum):
    """What the viewer's local order list can be trusted for."""

    LIVE = "live"  # Channel connected, events applied as they arrive
    DEGRADED = "degraded"  # Channel unavailable, manual refresh only
    OFFLINE = "offline"  # Last REST fetch failed, showing last-known-good data


# Storefront wire names for binding types
BINDING_ALIASES: dict[str, BindingType] = {
    "spiralBinding": BindingType.SPIRAL,
    "staplingBinding": BindingType.STAPLE,
    "hardcoverBinding": BindingType.HARDCOVER,
}
