"""
Order lifecycle rules.

    pending -> confirmed -> processing -> shipped -> delivered -> refunded
    pending | confirmed | processing -> cancelled

``cancelled`` and ``refunded`` are terminal, ``delivered`` only moves on to
``refunded``.
"""
from datetime import datetime, timezone
from enum import Enum

from shopcore.domain.errors import InconsistentPaymentStatus, InvalidStatusTransition


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

NON_CANCELLABLE = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def apply_transition(order, target: OrderStatus | str, tracking_number: str | None = None, now: datetime | None = None):
    """
    Move ``order`` (anything with status/payment_status/tracking_number/
    delivered_at attributes) to ``target``. A transition to the current
    status is a no-op.
    """
    current = OrderStatus(order.status)
    target = OrderStatus(target)

    if current == target:
        return order

    if not can_transition(current, target):
        raise InvalidStatusTransition(
            f"Cannot change order status from '{current.value}' to '{target.value}'"
        )

    if target == OrderStatus.SHIPPED:
        if tracking_number:
            order.tracking_number = tracking_number
        if not order.tracking_number:
            raise InvalidStatusTransition("A tracking number is required to ship an order")

    if target == OrderStatus.DELIVERED:
        if order.payment_status != PaymentStatus.PAID.value:
            raise InconsistentPaymentStatus("Only paid orders can be marked delivered")
        if order.delivered_at is None:
            order.delivered_at = now or datetime.now(timezone.utc)

    if target == OrderStatus.REFUNDED and order.payment_status != PaymentStatus.REFUNDED.value:
        raise InconsistentPaymentStatus("Payment must be refunded before the order is marked refunded")

    order.status = target.value
    return order


def force_cancel(order):
    current = OrderStatus(order.status)
    if current == OrderStatus.DELIVERED:
        raise InvalidStatusTransition("Delivered orders cannot be cancelled")
    if current == OrderStatus.CANCELLED:
        raise InvalidStatusTransition("Order is already cancelled")
    order.status = OrderStatus.CANCELLED.value
    return order
