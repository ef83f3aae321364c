"""Inventory item storage backed by SQLite."""

from __future__ import annotations

import sqlite3
from decimal import Decimal
from pathlib import Path

from ..models import InventoryRecord, InventoryStore, to_money
from .schema import ensure_schema


class InventoryDB(InventoryStore):
    """Manages the inventory_items table.

    Calls are short local transactions, so the async store methods run them
    inline on the event loop.
    """

    def __init__(self, db_path: str | Path = "~/.config/stocktrack/inventory.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    async def add_item(self, record: InventoryRecord, owner_key: str) -> InventoryRecord:
        return self.insert_item(record, owner_key)

    async def list_items(self, owner_key: str) -> list[InventoryRecord]:
        return self.get_items(owner_key)

    def insert_item(self, record: InventoryRecord, owner_key: str) -> InventoryRecord:
        """Insert one record and return a copy carrying its row id.

        Raises:
            ValueError: If the record has no name, a negative quantity or a
                negative price.
        """
        name = record.name.strip()
        if not name:
            raise ValueError("item name is required")
        if record.quantity < 0:
            raise ValueError(f"quantity must be >= 0, got {record.quantity}")
        price = to_money(record.unit_price)
        if price < 0:
            raise ValueError(f"unit price must be >= 0, got {price}")

        conn = self._get_conn()
        cur = conn.execute(
            """INSERT INTO inventory_items
               (owner_key, name, category, quantity, unit_price,
                description, status, date_added)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                owner_key,
                name,
                record.category,
                record.quantity,
                str(price),
                record.description,
                record.status,
                record.date_added,
            ),
        )
        conn.commit()
        return InventoryRecord(
            name=name,
            category=record.category,
            quantity=record.quantity,
            unit_price=price,
            status=record.status,
            date_added=record.date_added,
            description=record.description,
            id=cur.lastrowid,
            owner_key=owner_key,
        )

    def get_items(self, owner_key: str) -> list[InventoryRecord]:
        """Return the owner's items, oldest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM inventory_items WHERE owner_key = ? ORDER BY id",
            (owner_key,),
        ).fetchall()
        return [_row_to_record(r) for r in rows]

    def count_items(self, owner_key: str) -> int:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM inventory_items WHERE owner_key = ?",
            (owner_key,),
        ).fetchone()
        return int(row["n"])

    def delete_item(self, item_id: int, owner_key: str) -> bool:
        """Delete one of the owner's items. Returns False if it did not exist."""
        conn = self._get_conn()
        cur = conn.execute(
            "DELETE FROM inventory_items WHERE id = ? AND owner_key = ?",
            (item_id, owner_key),
        )
        conn.commit()
        return cur.rowcount > 0


def _row_to_record(row: sqlite3.Row) -> InventoryRecord:
    return InventoryRecord(
        name=row["name"],
        category=row["category"],
        quantity=int(row["quantity"]),
        unit_price=Decimal(row["unit_price"]),
        status=row["status"],
        date_added=row["date_added"],
        description=row["description"],
        id=row["id"],
        owner_key=row["owner_key"],
    )
