# shopcore/repos/cart_repo.py
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shopcore.data.errors import (
    ConcurrentInsertConflict,
    DuplicateKeyViolation,
    constraint_name,
    is_duplicate_key,
)
from shopcore.data.models.cart import CART_ACTIVE, CartModel
from shopcore.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    #carts
    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.id == cart_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_active_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id, CartModel.status == CART_ACTIVE)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        """Insert inside a savepoint; a second active cart for the user is a DuplicateKeyViolation."""
        try:
            with self.db.begin_nested():
                self.db.add(cart)
                self.db.flush()
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateKeyViolation(
                    f"User {cart.user_id} already has an active cart",
                    constraint=constraint_name(e) or "uq_carts_user_active",
                ) from e
            raise
        return cart

    def update_totals(self, cart_id: int, total_amount: Decimal, total_items: int, at: datetime) -> int:
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id)
            .values(total_amount=total_amount, total_items=total_items, last_activity_at=at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_status(self, cart_id: int, status: str, expected_status: str | None = None) -> int:
        #conditional on the current status so two converters cannot both win
        stmt = update(CartModel).where(CartModel.id == cart_id)
        if expected_status is not None:
            stmt = stmt.where(CartModel.status == expected_status)
        result = self.db.execute(
            stmt.values(status=status).execution_options(synchronize_session=False)
        )
        return result.rowcount

    def find_idle_active_carts(self, idle_before: datetime) -> list[CartModel]:
        return list(
            self.db.execute(
                select(CartModel).where(
                    CartModel.status == CART_ACTIVE,
                    CartModel.last_activity_at < idle_before,
                )
            ).scalars()
        )

    #items
    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel)
            .where(CartItemModel.cart_id == cart_id, CartItemModel.product_id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_cart_item_by_id(self, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel)
            .where(CartItemModel.id == item_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def insert_cart_item(self, item: CartItemModel) -> CartItemModel:
        """
        Insert a new line inside a savepoint. Losing the race on
        (cart_id, product_id) rolls back only the savepoint and surfaces as
        ConcurrentInsertConflict.
        """
        try:
            with self.db.begin_nested():
                self.db.add(item)
                self.db.flush()
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise ConcurrentInsertConflict(
                    f"Cart {item.cart_id} already holds product {item.product_id}",
                    constraint=constraint_name(e) or "uk_cart_product",
                ) from e
            raise
        return item

    def increment_cart_item(self, item_id: int, delta: int) -> int:
        """
        quantity and total_price move in one UPDATE statement, so concurrent
        increments on the same row cannot overwrite each other.
        """
        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(
                quantity=CartItemModel.quantity + delta,
                total_price=CartItemModel.total_price + CartItemModel.unit_price * delta,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_item_quantity(self, item_id: int, quantity: int, total_price: Decimal) -> int:
        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(quantity=quantity, total_price=total_price)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def update_item_snapshot(self, item_id: int, snapshot: dict) -> int:
        result = self.db.execute(
            update(CartItemModel)
            .where(CartItemModel.id == item_id)
            .values(product_snapshot=snapshot)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart_item(self, item_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.id == item_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_cart_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel)
            .where(CartItemModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
