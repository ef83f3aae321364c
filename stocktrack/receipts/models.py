"""Line items, inventory records, and the collaborator interfaces they flow through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

STATUS_IN_STOCK = "In Stock"
STATUS_LIMITED = "Limited Stock"
STATUS_OUT_OF_STOCK = "Out of Stock"

RESOURCE_INVENTORY_ITEMS = "inventoryItems"
RESOURCE_RECEIPT_SCANS = "receiptScans"

UNLIMITED = -1

_CENT = Decimal("0.01")


def to_money(value: object) -> Decimal:
    """Coerce a number or numeric string to a two-digit Decimal.

    Comma decimal separators are accepted ("1,20" -> 1.20).

    Raises:
        ValueError: If the value is not numeric.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, bool):
        raise ValueError(f"not a money value: {value!r}")
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        text = str(value).strip().replace(",", ".")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"not a money value: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"not a money value: {value!r}")
    try:
        return amount.quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"money value out of range: {value!r}") from None


def stock_status(quantity: int) -> str:
    """Derive the stock status label from a quantity."""
    if quantity <= 0:
        return STATUS_OUT_OF_STOCK
    if quantity <= 10:
        return STATUS_LIMITED
    return STATUS_IN_STOCK


@dataclass
class CandidateLineItem:
    """One purchased product read off a receipt."""

    name: str
    quantity: int = 1
    unit_price: Decimal = field(default_factory=lambda: Decimal("0.00"))

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
        }


@dataclass
class InventoryRecord:
    """A persisted (or about to be persisted) inventory row."""

    name: str
    category: str
    quantity: int
    unit_price: Decimal
    status: str
    date_added: str  # ISO-8601 date
    description: str = ""
    id: int | None = None
    owner_key: str = ""

    @classmethod
    def from_candidate(
        cls,
        item: CandidateLineItem,
        *,
        category: str,
        date_added: str,
        description: str = "",
    ) -> InventoryRecord:
        quantity = max(int(item.quantity), 0)
        return cls(
            name=item.name.strip(),
            category=category,
            quantity=quantity,
            unit_price=to_money(item.unit_price),
            status=stock_status(quantity),
            date_added=date_added,
            description=description,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "description": self.description,
            "status": self.status,
            "date_added": self.date_added,
        }


class InventoryStore(ABC):
    """Where committed items end up."""

    @abstractmethod
    async def add_item(self, record: InventoryRecord, owner_key: str) -> InventoryRecord:
        """Persist one record and return it with its assigned id."""
        ...

    @abstractmethod
    async def list_items(self, owner_key: str) -> list[InventoryRecord]:
        ...


class QuotaProvider(ABC):
    """Reports how much of a metered resource an owner may still use."""

    @abstractmethod
    async def remaining_allowance(self, owner_key: str, resource_type: str) -> int:
        """Return the remaining count, or ``UNLIMITED`` (-1)."""
        ...

    def record_use(self, owner_key: str, resource_type: str) -> None:
        """Count one use of a metered resource. Providers that do not meter ignore it."""
