"""Shared annotated types for wire models."""

from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

# Money is computed as Decimal; the storefront API expects JSON numbers
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]
