"""SQLite storage for inventory items and metered usage."""

from .inventory import InventoryDB
from .schema import ensure_schema
from .usage import UsageDB

__all__ = [
    "InventoryDB",
    "UsageDB",
    "ensure_schema",
]
