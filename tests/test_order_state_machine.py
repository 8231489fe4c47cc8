from types import SimpleNamespace

import pytest

from shopcore.domain.errors import InconsistentPaymentStatus, InvalidStatusTransition
from shopcore.domain.order_status import (
    ALLOWED_TRANSITIONS,
    OrderStatus,
    apply_transition,
    can_transition,
    force_cancel,
)


def make_order(status="pending", payment_status="pending", tracking_number=None):
    return SimpleNamespace(
        status=status,
        payment_status=payment_status,
        tracking_number=tracking_number,
        delivered_at=None,
    )


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "confirmed"),
            ("pending", "cancelled"),
            ("confirmed", "processing"),
            ("processing", "shipped"),
            ("processing", "cancelled"),
            ("shipped", "delivered"),
            ("delivered", "refunded"),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            ("pending", "shipped"),
            ("shipped", "cancelled"),
            ("delivered", "cancelled"),
            ("cancelled", "pending"),
            ("refunded", "delivered"),
        ],
    )
    def test_rejected(self, current, target):
        assert not can_transition(current, target)

    def test_terminal_states_have_no_exit(self):
        assert ALLOWED_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()
        assert ALLOWED_TRANSITIONS[OrderStatus.REFUNDED] == frozenset()


class TestApplyTransition:
    def test_moves_forward(self):
        order = apply_transition(make_order(), "confirmed")
        assert order.status == "confirmed"

    def test_same_status_is_noop(self):
        order = apply_transition(make_order(status="processing"), OrderStatus.PROCESSING)
        assert order.status == "processing"

    def test_invalid_edge_leaves_order_untouched(self):
        order = make_order()
        with pytest.raises(InvalidStatusTransition):
            apply_transition(order, "delivered")
        assert order.status == "pending"

    def test_shipping_requires_tracking_number(self):
        with pytest.raises(InvalidStatusTransition):
            apply_transition(make_order(status="processing"), "shipped")

    def test_shipping_records_tracking_number(self):
        order = apply_transition(make_order(status="processing"), "shipped", tracking_number="JP123")
        assert order.status == "shipped"
        assert order.tracking_number == "JP123"

    def test_delivery_requires_payment(self):
        order = make_order(status="shipped", tracking_number="JP123")
        with pytest.raises(InconsistentPaymentStatus):
            apply_transition(order, "delivered")
        assert order.delivered_at is None

    def test_delivery_stamps_delivered_at(self):
        order = apply_transition(make_order(status="shipped", payment_status="paid"), "delivered")
        assert order.status == "delivered"
        assert order.delivered_at is not None

    def test_refund_requires_refunded_payment(self):
        with pytest.raises(InconsistentPaymentStatus):
            apply_transition(make_order(status="delivered", payment_status="paid"), "refunded")

        order = apply_transition(make_order(status="delivered", payment_status="refunded"), "refunded")
        assert order.status == "refunded"


class TestForceCancel:
    @pytest.mark.parametrize("status", ["pending", "confirmed", "processing", "shipped", "refunded"])
    def test_cancels(self, status):
        assert force_cancel(make_order(status=status)).status == "cancelled"

    @pytest.mark.parametrize("status", ["delivered", "cancelled"])
    def test_rejects(self, status):
        with pytest.raises(InvalidStatusTransition):
            force_cancel(make_order(status=status))
