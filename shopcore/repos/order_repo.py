# shopcore/repos/order_repo.py
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from shopcore.data.errors import DuplicateKeyViolation, constraint_name, is_duplicate_key
from shopcore.data.models.order import OrderModel
from shopcore.data.models.order_item import OrderItemModel

SORTABLE_COLUMNS = {
    "order_date": OrderModel.order_date,
    "total_amount": OrderModel.total_amount,
    "status": OrderModel.status,
    "order_number": OrderModel.order_number,
}


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def count_orders_between(self, start: datetime, end: datetime) -> int:
        return self.db.execute(
            select(func.count(OrderModel.id)).where(
                OrderModel.order_date >= start,
                OrderModel.order_date < end,
            )
        ).scalar_one()

    def order_number_exists(self, order_number: str) -> bool:
        return (
            self.db.execute(
                select(OrderModel.id).where(OrderModel.order_number == order_number)
            ).first()
            is not None
        )

    def insert_order(self, order: OrderModel) -> OrderModel:
        try:
            with self.db.begin_nested():
                self.db.add(order)
                self.db.flush()
        except IntegrityError as e:
            if is_duplicate_key(e):
                raise DuplicateKeyViolation(
                    f"Order number {order.order_number} is already taken",
                    constraint=constraint_name(e) or "orders_order_number_key",
                ) from e
            raise
        return order

    def add_order_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_order_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.order_number == order_number)
            .options(selectinload(OrderModel.items))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_orders(
        self,
        user_id: int | None = None,
        status: str | None = None,
        payment_status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        search: str | None = None,
        sort_by: str = "order_date",
        sort_order: str = "desc",
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[OrderModel], int]:
        filters = []
        if user_id is not None:
            filters.append(OrderModel.user_id == user_id)
        if status:
            filters.append(OrderModel.status == status)
        if payment_status:
            filters.append(OrderModel.payment_status == payment_status)
        if start is not None:
            filters.append(OrderModel.order_date >= start)
        if end is not None:
            filters.append(OrderModel.order_date < end)
        if search:
            filters.append(OrderModel.order_number.ilike(f"%{search}%"))

        total = self.db.execute(
            select(func.count(OrderModel.id)).where(*filters)
        ).scalar_one()

        column = SORTABLE_COLUMNS[sort_by]
        ordering = column.asc() if sort_order == "asc" else column.desc()

        rows = self.db.execute(
            select(OrderModel)
            .where(*filters)
            .options(selectinload(OrderModel.items))
            .order_by(ordering, OrderModel.id)
            .offset(offset)
            .limit(limit)
        ).scalars().all()

        return list(rows), total

    def save(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order
