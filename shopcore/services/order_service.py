# shopcore/services/order_service.py
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from math import ceil
from typing import Any, Dict

from sqlalchemy.orm import Session

from shopcore.data.database import run_in_transaction
from shopcore.data.models.cart_item import CartItemModel
from shopcore.data.models.order import OrderModel
from shopcore.data.models.order_item import OrderItemModel
from shopcore.domain.address import validate_address
from shopcore.domain.errors import (
    AccessDenied,
    EmptyCart,
    InvalidOrderAmount,
    OrderItemProductMissing,
    OrderNotFound,
)
from shopcore.domain.money import ZERO, tax_for, to_money
from shopcore.domain.order_status import OrderStatus, PaymentStatus, apply_transition, force_cancel
from shopcore.domain.schemas import OrderQuery, Principal
from shopcore.repos.cart_repo import CartRepo
from shopcore.repos.order_repo import OrderRepo
from shopcore.services.cart_service import CartService
from shopcore.services.notification_service import NotificationService
from shopcore.services.order_number import OrderNumberGenerator, local_now
from shopcore.services.product_client import ProductCatalog
from shopcore.utils.settings import DELIVERY_LEAD_DAYS, FLAT_SHIPPING_FEE, FREE_SHIPPING_THRESHOLD
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("tracking_number", "payment_method", "payment_transaction_id", "notes")


def shipping_for(subtotal: Decimal) -> Decimal:
    return ZERO if subtotal >= FREE_SHIPPING_THRESHOLD else to_money(FLAT_SHIPPING_FEE)


class OrderService:
    """
    Order use cases, kept apart from CartService.

    create_order is the checkout transaction: everything from reading the
    cart to converting it commits together or not at all.
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductCatalog,
        notification_service: NotificationService | None = None,
        number_generator: OrderNumberGenerator | None = None,
    ):
        self.db = db
        self.product_client = product_client
        self.carts = CartService(db, product_client)
        self.notification_service = notification_service or NotificationService()
        self.numbers = number_generator or OrderNumberGenerator()

    #commands
    def create_order(
        self,
        user_id: int,
        shipping_address: Dict[str, Any],
        billing_address: Dict[str, Any] | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        metadata: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        result = run_in_transaction(
            self.db,
            lambda tx: self._checkout(
                tx, user_id, shipping_address, billing_address, payment_method, notes, metadata
            ),
        )
        logger.info(f"Order {result['order_number']} created for user {user_id}")

        try:
            self.notification_service.send_order_notification(user_id, result["id"])
        except Exception:
            #the order is committed; a lost notification must not turn into a failed checkout
            logger.exception(f"Could not dispatch notification for order {result['id']}")

        return result

    def _checkout(
        self,
        tx: Session,
        user_id: int,
        shipping_address: Dict[str, Any],
        billing_address: Dict[str, Any] | None,
        payment_method: str | None,
        notes: str | None,
        metadata: Dict[str, Any] | None,
    ) -> Dict[str, Any]:
        cart = self.carts.get_or_create_active_cart(tx, user_id)
        cart_items = CartRepo(tx).get_cart_items(cart.id)
        if not cart_items:
            raise EmptyCart("Cart is empty")

        validate_address(shipping_address, "shipping")
        if billing_address:
            validate_address(billing_address, "billing")

        subtotal = to_money(cart.total_amount)
        if subtotal <= ZERO:
            raise InvalidOrderAmount(f"Order subtotal must be positive, got {subtotal}")
        tax_amount = tax_for(subtotal)
        shipping_amount = shipping_for(subtotal)
        discount_amount = ZERO
        total_amount = to_money(subtotal + tax_amount + shipping_amount - discount_amount)

        now = self.numbers.clock()
        repo = OrderRepo(tx)
        order = self.numbers.allocate(
            tx,
            lambda candidate: repo.insert_order(
                OrderModel(
                    order_number=candidate,
                    user_id=user_id,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    subtotal=subtotal,
                    tax_amount=tax_amount,
                    shipping_amount=shipping_amount,
                    discount_amount=discount_amount,
                    total_amount=total_amount,
                    order_date=now,
                    estimated_delivery_date=now + timedelta(days=DELIVERY_LEAD_DAYS),
                    shipping_address=shipping_address,
                    billing_address=billing_address or shipping_address,
                    payment_method=payment_method,
                    notes=notes,
                    order_metadata=metadata,
                )
            ),
            now,
        )
        order_number = order.order_number

        for cart_item in cart_items:
            repo.add_order_item(
                OrderItemModel(
                    order_id=order.id,
                    product_id=cart_item.product_id,
                    quantity=cart_item.quantity,
                    unit_price=cart_item.unit_price,
                    total_price=cart_item.total_price,
                    product_snapshot=self._frozen_snapshot(cart_item),
                )
            )

        self.carts.convert(tx, cart.id)
        logger.info(f"Cart {cart.id} converted into order {order_number}")

        return self._order_to_dict(repo.get_order(order.id))

    def _frozen_snapshot(self, cart_item: CartItemModel) -> Dict[str, Any]:
        product = self.product_client.get_by_id(cart_item.product_id, include_removed=True)
        if product is None:
            raise OrderItemProductMissing(
                f"Product {cart_item.product_id} of cart item {cart_item.id} no longer exists"
            )

        display = cart_item.product_snapshot or {}
        return {
            "name": display.get("name") or product.name,
            "sku": product.sku,
            "brand": display.get("brand") or product.brand,
            "model": product.model,
            "image_url": display.get("image_url") or product.primary_image_url,
            "specifications": product.specifications,
        }

    def update_order(self, principal: Principal, order_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Admin update: payment status first, then the status transition, then
        tracking/payment metadata. Money and items are never touched.
        """
        if not principal.is_admin:
            raise AccessDenied("Only administrators can update orders")

        def _update(tx: Session) -> Dict[str, Any]:
            repo = OrderRepo(tx)
            order = self._find(repo, order_id)

            if changes.get("payment_status") is not None:
                order.payment_status = PaymentStatus(changes["payment_status"]).value

            if changes.get("status") is not None:
                previous = order.status
                apply_transition(order, changes["status"], tracking_number=changes.get("tracking_number"))
                logger.info(f"Order {order.order_number} status {previous} -> {order.status}")

            for field in UPDATABLE_FIELDS:
                if changes.get(field) is not None:
                    setattr(order, field, changes[field])

            repo.save(order)
            return self._order_to_dict(repo.get_order(order.id))

        return run_in_transaction(self.db, _update)

    def cancel(self, principal: Principal, order_id: int) -> Dict[str, Any]:
        def _cancel(tx: Session) -> Dict[str, Any]:
            repo = OrderRepo(tx)
            order = self._owned(self._find(repo, order_id), principal)
            force_cancel(order)
            repo.save(order)
            logger.info(f"Order {order.order_number} cancelled by user {principal.user_id}")
            return self._order_to_dict(repo.get_order(order.id))

        return run_in_transaction(self.db, _cancel)

    #queries
    def get_order(self, principal: Principal, order_id: int) -> Dict[str, Any]:
        return run_in_transaction(
            self.db,
            lambda tx: self._order_to_dict(self._owned(self._find(OrderRepo(tx), order_id), principal)),
        )

    def get_order_by_number(self, principal: Principal, order_number: str) -> Dict[str, Any]:
        def _get(tx: Session) -> Dict[str, Any]:
            order = OrderRepo(tx).get_order_by_number(order_number)
            if not order:
                raise OrderNotFound(f"Order {order_number} not found")
            return self._order_to_dict(self._owned(order, principal))

        return run_in_transaction(self.db, _get)

    def list_orders(self, principal: Principal, query: OrderQuery | None = None) -> Dict[str, Any]:
        """Admins see every order, everyone else only their own."""
        query = query or OrderQuery()

        def _list(tx: Session) -> Dict[str, Any]:
            rows, total = OrderRepo(tx).list_orders(
                user_id=None if principal.is_admin else principal.user_id,
                status=query.status.value if query.status else None,
                payment_status=query.payment_status.value if query.payment_status else None,
                start=self._day_start(query.start_date),
                end=self._day_start(query.end_date + timedelta(days=1)) if query.end_date else None,
                search=query.search,
                sort_by=query.sort_by,
                sort_order=query.sort_order,
                offset=(query.page - 1) * query.limit,
                limit=query.limit,
            )
            return {
                "data": [self._order_to_dict(o) for o in rows],
                "pagination": {
                    "page": query.page,
                    "limit": query.limit,
                    "total": total,
                    "total_pages": ceil(total / query.limit),
                    "has_next": query.page * query.limit < total,
                    "has_prev": query.page > 1,
                },
            }

        return run_in_transaction(self.db, _list)

    #helpers
    @staticmethod
    def _find(repo: OrderRepo, order_id: int) -> OrderModel:
        order = repo.get_order(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        return order

    @staticmethod
    def _owned(order: OrderModel, principal: Principal) -> OrderModel:
        if order.user_id != principal.user_id and not principal.is_admin:
            raise AccessDenied("No access to this order")
        return order

    @staticmethod
    def _day_start(day: date | None) -> datetime | None:
        if day is None:
            return None
        return datetime.combine(day, time.min).replace(tzinfo=local_now().tzinfo)

    @staticmethod
    def _order_to_dict(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "subtotal": to_money(order.subtotal),
            "tax_amount": to_money(order.tax_amount),
            "shipping_amount": to_money(order.shipping_amount),
            "discount_amount": to_money(order.discount_amount),
            "total_amount": to_money(order.total_amount),
            "order_date": order.order_date,
            "estimated_delivery_date": order.estimated_delivery_date,
            "delivered_at": order.delivered_at,
            "shipping_address": order.shipping_address,
            "billing_address": order.billing_address,
            "notes": order.notes,
            "tracking_number": order.tracking_number,
            "payment_method": order.payment_method,
            "payment_transaction_id": order.payment_transaction_id,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "unit_price": to_money(i.unit_price),
                    "total_price": to_money(i.total_price),
                    "product_snapshot": i.product_snapshot,
                }
                for i in order.items
            ],
            "created_at": order.created_at,
            "updated_at": order.updated_at,
        }
