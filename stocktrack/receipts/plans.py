"""Subscription plan limits and the quota provider built on them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from .db.inventory import InventoryDB
from .db.usage import UsageDB
from .models import (
    RESOURCE_INVENTORY_ITEMS,
    RESOURCE_RECEIPT_SCANS,
    UNLIMITED,
    QuotaProvider,
)

logger = logging.getLogger(__name__)

RESOURCE_EXCEL_IMPORTS = "excelImports"


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    monthly_price: int  # GBP
    limits: dict[str, int] = field(default_factory=dict)


PLANS: dict[str, Plan] = {
    "free": Plan(
        id="free",
        name="Free Trial",
        monthly_price=0,
        limits={
            RESOURCE_INVENTORY_ITEMS: 10,
            RESOURCE_RECEIPT_SCANS: 3,
            RESOURCE_EXCEL_IMPORTS: 1,
        },
    ),
    "pro": Plan(
        id="pro",
        name="Professional",
        monthly_price=12,
        limits={
            RESOURCE_INVENTORY_ITEMS: 2500,
            RESOURCE_RECEIPT_SCANS: 100,
            RESOURCE_EXCEL_IMPORTS: 10,
        },
    ),
    "power": Plan(
        id="power",
        name="Power",
        monthly_price=25,
        limits={
            RESOURCE_INVENTORY_ITEMS: UNLIMITED,
            RESOURCE_RECEIPT_SCANS: UNLIMITED,
            RESOURCE_EXCEL_IMPORTS: UNLIMITED,
        },
    ),
}


def get_plan(plan_id: str | None) -> Plan:
    """Look up a plan; unknown or missing ids fall back to the free plan."""
    return PLANS.get(plan_id or "free", PLANS["free"])


class PlanQuota(QuotaProvider):
    """Remaining allowance = plan limit − current usage.

    Inventory items are counted from the store; every other resource is
    counted from usage events in the current calendar month.
    """

    def __init__(
        self,
        plan_id: str,
        inventory: InventoryDB,
        usage: UsageDB | None = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._plan = get_plan(plan_id)
        self._inventory = inventory
        self._usage = usage
        self._today = today

    @property
    def plan(self) -> Plan:
        return self._plan

    async def remaining_allowance(self, owner_key: str, resource_type: str) -> int:
        if resource_type not in self._plan.limits:
            raise ValueError(f"unknown metered resource: {resource_type!r}")
        limit = self._plan.limits[resource_type]
        if limit == UNLIMITED:
            return UNLIMITED

        if resource_type == RESOURCE_INVENTORY_ITEMS:
            used = self._inventory.count_items(owner_key)
        elif self._usage is not None:
            month_start = self._today().replace(day=1)
            used = self._usage.count_since(owner_key, resource_type, month_start)
        else:
            used = 0

        remaining = max(limit - used, 0)
        logger.debug(
            "%s %s: %d of %d used, %d left",
            owner_key, resource_type, used, limit, remaining,
        )
        return remaining

    def record_use(self, owner_key: str, resource_type: str) -> None:
        if self._usage is not None:
            self._usage.record(owner_key, resource_type, self._today())
