"""Beginner-friendly overview for this module.

WHAT: The append-only ``inventory_logs`` table.
WHEN: A row is written for every export, return, phantom-export adjustment and
standalone stock correction.
HOW: Rows are only ever inserted. Current stock lives on ``products``; these
rows explain how it got there.

File: rental_ledger/models/inventory.py
"""


from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, Text

from ..db.session import Base


class InventoryLog(Base):
    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    # 0 marks a standalone correction that belongs to no order.
    order_id = Column(Integer, nullable=False, default=0, index=True)
    action_type = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False)
    timestamp = Column(Text, nullable=False, index=True)
    note = Column(Text, nullable=True)
    staff_id = Column(Integer, nullable=True)
    staff_name = Column(Text, nullable=True)
