"""Tiny home-grown migration helpers with plain-language explanations."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

# Simple, idempotent migrations for SQLite ledgers created by older builds.
# Columns are only ever added; nothing is dropped.


def _table_columns(engine: Engine, table: str) -> list[dict[str, object]]:
    """Fetch SQLite's description of a table so we know what columns exist."""

    with engine.connect() as conn:
        return conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()


def _column_names(engine: Engine, table: str) -> set[str]:
    return {record["name"] for record in _table_columns(engine, table)}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    """ALTER TABLE ADD COLUMN helper."""
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


# Columns added after the first ledger release, per table.
_NEEDED_COLUMNS: dict[str, dict[str, str]] = {
    "products": {
        "location": "TEXT",
        "specs": "TEXT",
        "version": "INTEGER DEFAULT 1 NOT NULL",
    },
    "orders": {
        "final_amount": "REAL",
        "completed_by": "TEXT",
        "note": "TEXT",
        "version": "INTEGER DEFAULT 1 NOT NULL",
    },
    "order_items": {
        "is_external": "INTEGER DEFAULT 0 NOT NULL",
        "supplier_id": "INTEGER",
        "cost_price": "REAL",
        "returned_at": "TEXT",
        "returned_by": "TEXT",
        "note": "TEXT",
        "version": "INTEGER DEFAULT 1 NOT NULL",
    },
    "inventory_logs": {
        "staff_id": "INTEGER",
        "staff_name": "TEXT",
    },
}


def run_migrations(engine: Engine) -> None:
    """Bring an existing SQLite schema up-to-date with the models.

    Tables that do not exist yet are skipped; ``Base.metadata.create_all``
    creates them fresh.
    """

    if engine.dialect.name != "sqlite":
        return

    for table, needed in _NEEDED_COLUMNS.items():
        existing = _column_names(engine, table)
        if not existing:
            continue
        for name, dtype in needed.items():
            if name not in existing:
                _add_column_sqlite(engine, table, f"{name} {dtype}")

    if _column_names(engine, "inventory_logs"):
        _create_index_if_not_exists(engine, "inventory_logs", "ix_inventory_logs_product_ts", ["product_id", "timestamp"])
    if _column_names(engine, "products"):
        _create_index_if_not_exists(engine, "products", "ix_products_code_unique", ["code"], unique=True)
