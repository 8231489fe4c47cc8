from sqlalchemy import JSON, Column, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship

from shopcore.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    #frozen at checkout, never refreshed from the catalog
    product_snapshot = Column(JSON, nullable=False)

    order = relationship("OrderModel", back_populates="items")
