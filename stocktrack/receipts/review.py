"""In-memory staging area where the operator corrects parsed items."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from .errors import IndexOutOfRange
from .models import CandidateLineItem, to_money
from .parser import scan_total

EDITABLE_FIELDS = ("name", "quantity", "unit_price")


def coerce_quantity(value: object) -> int:
    """Coerce operator input to a non-negative whole quantity; junk becomes 0."""
    try:
        quantity = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(quantity, 0)


def coerce_price(value: object) -> Decimal:
    """Coerce operator input to a non-negative price; junk becomes 0.00."""
    try:
        price = to_money(value)
    except ValueError:
        return Decimal("0.00")
    return price if price >= 0 else Decimal("0.00")


class ReviewDraft:
    """Mutable, ordered copy of the parser's output.

    Nothing here is persisted; dropping the draft discards the edits.
    """

    def __init__(self, items: Iterable[CandidateLineItem] = ()) -> None:
        self._items: list[CandidateLineItem] = [
            CandidateLineItem(name=i.name, quantity=i.quantity, unit_price=i.unit_price)
            for i in items
        ]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items)

    def __getitem__(self, index: int) -> CandidateLineItem:
        return self._items[self._check(index)]

    @property
    def items(self) -> list[CandidateLineItem]:
        return list(self._items)

    def _check(self, index: int) -> int:
        if not isinstance(index, int) or not 0 <= index < len(self._items):
            raise IndexOutOfRange(
                f"row {index!r} does not exist (draft has {len(self._items)} rows)"
            )
        return index

    def edit(self, index: int, field: str, value: object) -> ReviewDraft:
        """Set one field of one row.

        Numeric fields never reject input: anything that does not coerce to
        a non-negative number is stored as 0 for the operator to fix.
        """
        item = self._items[self._check(index)]
        if field == "name":
            item.name = str(value).strip()
        elif field == "quantity":
            item.quantity = coerce_quantity(value)
        elif field in ("unit_price", "price"):
            item.unit_price = coerce_price(value)
        else:
            raise ValueError(
                f"unknown field {field!r} (expected one of {', '.join(EDITABLE_FIELDS)})"
            )
        return self

    def remove(self, index: int) -> ReviewDraft:
        del self._items[self._check(index)]
        return self

    def add_blank(self) -> int:
        """Append an empty row for manual entry and return its index."""
        self._items.append(CandidateLineItem(name="", quantity=1, unit_price=Decimal("0.00")))
        return len(self._items) - 1

    def clear(self) -> ReviewDraft:
        self._items.clear()
        return self

    def committable(self) -> list[CandidateLineItem]:
        """Rows with a name, in draft order."""
        return [item for item in self._items if item.name.strip()]

    def total(self) -> Decimal:
        return scan_total(self._items)
