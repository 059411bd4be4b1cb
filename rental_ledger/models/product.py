"""Beginner-friendly overview for this module.

WHAT: The ``products`` table: one row per rentable equipment type.
WHEN: Loaded by ``SqlRepository`` on refresh and rewritten by stock changesets.
HOW: ``version`` is the optimistic-lock counter SQLAlchemy checks on UPDATE.

File: rental_ledger/models/product.py
"""


from __future__ import annotations

from sqlalchemy import Column, Float, Integer, Text

from ..db.session import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(Text, nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=True)
    price_per_day = Column(Float, nullable=False, default=0.0)
    total_owned = Column(Integer, nullable=False, default=0)
    current_physical_stock = Column(Integer, nullable=False, default=0)
    location = Column(Text, nullable=True)
    specs = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
