"""
Unit tests for the order status machine.
"""

import pytest

from printshop.models.status import (
    Flags,
    FlagRule,
    OrderStatus,
    Status,
    check_transition,
    coerce_status,
    normalize_status,
)
from printshop.services.exceptions import InvalidStatus, InvalidTransition


class TestNormalizeStatus:
    """Tests for normalize_status()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Pending", OrderStatus.PENDING),
            ("processing", OrderStatus.PROCESSING),
            ("SHIPPED", OrderStatus.SHIPPED),
            (" deli vered ", OrderStatus.DELIVERED),
            ("cAnCeLlEd\n", OrderStatus.CANCELLED),
            ("Completed", OrderStatus.COMPLETED),
            (OrderStatus.SHIPPED, OrderStatus.SHIPPED),
        ],
    )
    def test_known_statuses(self, raw, expected):
        assert normalize_status(raw) is expected

    @pytest.mark.parametrize("raw", ["", "done", "in progress", None, 3])
    def test_unknown_status_rejected(self, raw):
        with pytest.raises(InvalidStatus) as exc_info:
            normalize_status(raw)

        assert exc_info.value.value == raw

    def test_canonical_wire_form(self):
        assert normalize_status("processing").value == "Processing"

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_missing_status_defaults_to_pending(self, raw):
        assert coerce_status(raw) is OrderStatus.PENDING

    def test_coerce_still_rejects_unknown(self):
        with pytest.raises(InvalidStatus):
            coerce_status("lost")


class TestLifecycle:
    """Tests for status metadata and transitions."""

    def test_default_is_pending(self):
        assert OrderStatus.default() is OrderStatus.PENDING

    def test_final_states(self):
        assert OrderStatus.final_states() == {
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
            OrderStatus.COMPLETED,
        }

    def test_allowed_transitions(self):
        assert OrderStatus.PENDING.allowed_transitions == {OrderStatus.PROCESSING, OrderStatus.CANCELLED}
        assert OrderStatus.SHIPPED.allowed_transitions == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
        assert OrderStatus.COMPLETED.allowed_transitions == frozenset()

    def test_nominal_transition(self):
        assert check_transition(OrderStatus.PENDING, OrderStatus.PROCESSING) is True

    def test_same_status_is_nominal(self):
        assert check_transition(OrderStatus.DELIVERED, OrderStatus.DELIVERED, strict=True) is True

    def test_off_lifecycle_transition_is_permitted_by_default(self):
        assert check_transition(OrderStatus.DELIVERED, OrderStatus.PENDING) is False

    def test_off_lifecycle_transition_raises_in_strict_mode(self):
        with pytest.raises(InvalidTransition):
            check_transition(OrderStatus.CANCELLED, OrderStatus.SHIPPED, strict=True)


class TestFlags:
    """Tests for status flag validation."""

    def test_final_cannot_be_initial(self):
        with pytest.raises(ValueError, match="FINAL status cannot also be INITIAL"):
            Status("Broken", Flags.FINAL | Flags.INITIAL)

    def test_initial_cannot_be_active(self):
        with pytest.raises(ValueError, match="INITIAL status cannot also be ACTIVE"):
            Status("Broken", Flags.INITIAL | Flags.ACTIVE)

    def test_final_cannot_have_successors(self):
        with pytest.raises(ValueError):
            Status("Broken", Flags.FINAL, next=("Pending",))

    def test_rule_requires_trigger(self):
        with pytest.raises(ValueError):
            FlagRule(when=Flags.NONE, forbidden=Flags.FINAL)
