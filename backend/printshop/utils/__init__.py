"""Utility functions and helpers."""

from printshop.utils.datetime_utils import EPOCH, ensure_utc

__all__ = [
    "EPOCH",
    "ensure_utc",
]
