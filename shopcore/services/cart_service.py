# shopcore/services/cart_service.py
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.orm import Session

from shopcore.data.database import run_in_transaction
from shopcore.data.errors import ConcurrentInsertConflict, DuplicateKeyViolation
from shopcore.data.models.cart import CART_ABANDONED, CART_ACTIVE, CART_CONVERTED, CartModel
from shopcore.data.models.cart_item import CartItemModel
from shopcore.domain.errors import (
    AccessDenied,
    CartItemNotFound,
    CartNotActive,
    InvalidQuantity,
    ProductUnavailable,
    UnexpectedPersistenceError,
)
from shopcore.domain.money import ZERO, line_total, money_sum, to_money
from shopcore.repos.cart_repo import CartRepo
from shopcore.services.product_client import ProductCatalog, ProductSnapshot
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CartService:
    """
    Cart use cases.

    Queries (get_cart) read, commands (add/update/remove/clear) each run as
    one transaction. Methods taking ``tx`` are the transactional building
    blocks and never commit themselves; the order service composes them into
    the checkout transaction.
    """

    def __init__(self, db: Session, product_client: ProductCatalog):
        self.db = db
        self.product_client = product_client

    #query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = run_in_transaction(
            self.db,
            lambda tx: self._cart_to_dict(tx, self.get_or_create_active_cart(tx, user_id)),
        )
        #catalog lookups happen after commit, outside the transaction
        for item in cart["items"]:
            item["product"] = self._resolve_product(item["product_id"])
        return cart

    #aggregate
    def get_or_create_active_cart(self, tx: Session, user_id: int) -> CartModel:
        repo = CartRepo(tx)
        cart = repo.get_active_cart_by_user(user_id)
        if cart:
            return cart

        try:
            created = repo.create_cart(
                CartModel(
                    user_id=user_id,
                    status=CART_ACTIVE,
                    total_amount=ZERO,
                    total_items=0,
                    last_activity_at=_utcnow(),
                )
            )
        except DuplicateKeyViolation:
            #another request created it first, use theirs
            cart = repo.get_active_cart_by_user(user_id)
            if cart is None:
                raise
            logger.info(f"Active cart {cart.id} for user {user_id} created concurrently, reusing it")
            return cart

        logger.info(f"Created cart {created.id} for user {user_id}")
        return created

    def recompute_totals(self, tx: Session, cart_id: int) -> CartModel:
        """The only writer of cart totals."""
        repo = CartRepo(tx)
        items = repo.get_cart_items(cart_id)
        total_amount = to_money(money_sum(i.total_price for i in items))
        total_items = sum(i.quantity for i in items)

        repo.update_totals(cart_id, total_amount, total_items, _utcnow())
        return repo.get_cart(cart_id)

    def clear(self, tx: Session, cart_id: int) -> CartModel:
        removed = CartRepo(tx).delete_cart_items(cart_id)
        logger.info(f"Removed {removed} items from cart {cart_id}")
        return self.recompute_totals(tx, cart_id)

    #commands
    def add_item(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        metadata: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidQuantity("Quantity must be at least 1")

        product = self._purchasable_product(product_id)

        def _add(tx: Session) -> Dict[str, Any]:
            cart = self.get_or_create_active_cart(tx, user_id)
            self.upsert_item(
                tx,
                cart_id=cart.id,
                product_id=product_id,
                quantity=quantity,
                price_at_add=product.price,
                snapshot=self._display_snapshot(product, metadata),
                metadata=metadata,
            )
            return self._cart_to_dict(tx, self.recompute_totals(tx, cart.id))

        result = run_in_transaction(self.db, _add)
        logger.info(f"Added product {product_id} x{quantity} to cart {result['id']}")
        return result

    def upsert_item(
        self,
        tx: Session,
        cart_id: int,
        product_id: int,
        quantity: int,
        price_at_add,
        snapshot: Dict[str, Any] | None = None,
        metadata: Dict[str, Any] | None = None,
    ) -> CartItemModel:
        """
        Add-or-increment a cart line without losing concurrent updates.

        Existing line: one atomic UPDATE. Missing line: INSERT in a savepoint;
        if a concurrent request inserted the same (cart, product) first, the
        unique constraint rejects ours and we increment theirs instead.
        """
        repo = CartRepo(tx)
        item = repo.get_cart_item(cart_id, product_id)

        if item is None:
            try:
                return repo.insert_cart_item(
                    CartItemModel(
                        cart_id=cart_id,
                        product_id=product_id,
                        quantity=quantity,
                        unit_price=to_money(price_at_add),
                        total_price=line_total(price_at_add, quantity),
                        added_at=_utcnow(),
                        product_snapshot=snapshot,
                    )
                )
            except ConcurrentInsertConflict as conflict:
                logger.warning(f"{conflict}, falling back to increment")
                item = repo.get_cart_item(cart_id, product_id)
                if item is None:
                    raise

        return self._increment(repo, item, quantity, metadata)

    def _increment(
        self,
        repo: CartRepo,
        item: CartItemModel,
        quantity: int,
        metadata: Dict[str, Any] | None,
    ) -> CartItemModel:
        if repo.increment_cart_item(item.id, quantity) == 0:
            raise UnexpectedPersistenceError(f"Cart item {item.id} disappeared during increment")

        if metadata:
            repo.update_item_snapshot(item.id, {**(item.product_snapshot or {}), **metadata})

        updated = repo.get_cart_item_by_id(item.id)
        logger.info(
            f"Incremented cart item {item.id} by {quantity}, quantity now {updated.quantity}"
        )
        return updated

    def update_item_quantity(self, user_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidQuantity("Quantity must be at least 1")

        def _update(tx: Session) -> Dict[str, Any]:
            repo = CartRepo(tx)
            item = self._owned_item(repo, user_id, item_id)
            repo.set_item_quantity(item.id, quantity, line_total(item.unit_price, quantity))
            return self._cart_to_dict(tx, self.recompute_totals(tx, item.cart_id))

        result = run_in_transaction(self.db, _update)
        logger.info(f"Cart item {item_id} quantity set to {quantity}")
        return result

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any]:
        def _remove(tx: Session) -> Dict[str, Any]:
            repo = CartRepo(tx)
            item = self._owned_item(repo, user_id, item_id)
            repo.delete_cart_item(item.id)
            return self._cart_to_dict(tx, self.recompute_totals(tx, item.cart_id))

        result = run_in_transaction(self.db, _remove)
        logger.info(f"Cart item {item_id} removed from cart {result['id']}")
        return result

    def clear_cart(self, user_id: int) -> Dict[str, Any]:
        def _clear(tx: Session) -> Dict[str, Any]:
            cart = self.get_or_create_active_cart(tx, user_id)
            return self._cart_to_dict(tx, self.clear(tx, cart.id))

        return run_in_transaction(self.db, _clear)

    def convert(self, tx: Session, cart_id: int) -> None:
        """
        Flip an active cart to converted and drop its lines. Conditional on the
        cart still being active, so a second checkout of the same cart fails.
        """
        repo = CartRepo(tx)
        if repo.set_status(cart_id, CART_CONVERTED, expected_status=CART_ACTIVE) == 0:
            raise CartNotActive(f"Cart {cart_id} is no longer active")
        self.clear(tx, cart_id)

    def mark_abandoned(self, cart_id: int) -> bool:
        rowcount = run_in_transaction(
            self.db,
            lambda tx: CartRepo(tx).set_status(cart_id, CART_ABANDONED, expected_status=CART_ACTIVE),
        )
        if rowcount:
            logger.info(f"Cart {cart_id} marked abandoned")
        return rowcount == 1

    def abandon_idle_carts(self, idle_before: datetime) -> int:
        carts = run_in_transaction(self.db, lambda tx: CartRepo(tx).find_idle_active_carts(idle_before))
        return sum(1 for cart in carts if self.mark_abandoned(cart.id))

    #helpers
    def _purchasable_product(self, product_id: int) -> ProductSnapshot:
        logger.info(f"Fetching product {product_id} from catalog")
        product = self.product_client.get_by_id(product_id)
        if product is None:
            raise ProductUnavailable(f"Product {product_id} not found")
        if not product.is_purchasable:
            raise ProductUnavailable(f"Product {product_id} is not available for purchase")
        return product

    @staticmethod
    def _display_snapshot(product: ProductSnapshot, metadata: Dict[str, Any] | None) -> Dict[str, Any]:
        return {
            "name": product.name,
            "brand": product.brand,
            "image_url": product.primary_image_url,
            **(metadata or {}),
        }

    @staticmethod
    def _owned_item(repo: CartRepo, user_id: int, item_id: int) -> CartItemModel:
        item = repo.get_cart_item_by_id(item_id)
        if not item:
            raise CartItemNotFound(f"Cart item {item_id} not found")

        cart = repo.get_cart(item.cart_id)
        if cart.user_id != user_id:
            raise AccessDenied("No access to this cart item")
        if cart.status != CART_ACTIVE:
            raise CartNotActive(f"Cart {cart.id} can no longer be modified")
        return item

    def _resolve_product(self, product_id: int) -> Dict[str, Any] | None:
        product = self.product_client.get_by_id(product_id, include_removed=True)
        if product is None:
            logger.warning(f"Product {product_id} no longer exists in the catalog")
            return None
        return {
            "id": product.id,
            "name": product.name,
            "brand": product.brand,
            "primary_image_url": product.primary_image_url,
            "status": product.status,
        }

    def _cart_to_dict(self, tx: Session, cart: CartModel) -> Dict[str, Any]:
        items = CartRepo(tx).get_cart_items(cart.id)
        return {
            "id": cart.id,
            "user_id": cart.user_id,
            "status": cart.status,
            "total_amount": to_money(cart.total_amount),
            "total_items": cart.total_items,
            "last_activity_at": cart.last_activity_at,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "quantity": i.quantity,
                    "unit_price": to_money(i.unit_price),
                    "total_price": to_money(i.total_price),
                    "added_at": i.added_at,
                    "product_snapshot": i.product_snapshot,
                    "product": None,
                }
                for i in items
            ],
            "created_at": cart.created_at,
            "updated_at": cart.updated_at,
        }
