from __future__ import annotations

from sqlalchemy import Boolean, Column, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from ..db.session import Base


class Order(Base):
    """A rental booking. Dates are stored as ISO strings, like every timestamp here."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    rental_start_date = Column(Text, nullable=False)
    expected_return_date = Column(Text, nullable=False)
    actual_return_date = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="BOOKED", index=True)
    total_amount = Column(Float, nullable=False, default=0.0)
    final_amount = Column(Float, nullable=True)
    completed_by = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    is_external = Column(Boolean, nullable=False, default=False)
    supplier_id = Column(Integer, nullable=True)
    cost_price = Column(Float, nullable=True)
    exported_quantity = Column(Integer, nullable=False, default=0)
    returned_quantity = Column(Integer, nullable=False, default=0)
    returned_at = Column(Text, nullable=True)
    returned_by = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    order = relationship("Order", back_populates="items")

    __mapper_args__ = {"version_id_col": version}
