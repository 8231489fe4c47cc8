#shopcore/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, text
from sqlalchemy.orm import relationship

from shopcore.data.database import Base

CART_ACTIVE = "active"
CART_ABANDONED = "abandoned"
CART_CONVERTED = "converted"


def _utcnow():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)

    status = Column(String(20), nullable=False, default=CART_ACTIVE, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_items = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CartItemModel.id",
    )

    # one active cart per user, enforced by the store
    __table_args__ = (
        Index(
            "uq_carts_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )
