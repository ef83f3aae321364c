"""Persist reviewed receipt items into the inventory store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable

from .errors import QuotaExceeded
from .models import (
    RESOURCE_INVENTORY_ITEMS,
    UNLIMITED,
    CandidateLineItem,
    InventoryRecord,
    InventoryStore,
    QuotaProvider,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Scanned Items"


@dataclass
class FailedItem:
    index: int  # position in the committed batch
    item: CandidateLineItem
    error: Exception

    @property
    def reason(self) -> str:
        return type(self.error).__name__


@dataclass
class CommitResult:
    succeeded: list[InventoryRecord] = field(default_factory=list)
    failed: list[FailedItem] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def quota_skipped(self) -> list[FailedItem]:
        return [f for f in self.failed if isinstance(f.error, QuotaExceeded)]

    def summary(self) -> str:
        """One-line, operator-facing outcome."""
        parts = [f"Added {self.succeeded_count} item(s) from receipt scan"]
        skipped = len(self.quota_skipped)
        errored = self.failed_count - skipped
        if skipped:
            parts.append(f"{skipped} skipped: plan item limit reached")
        if errored:
            parts.append(f"{errored} failed to save")
        return "; ".join(parts) + "."


class CommitPipeline:
    """Persist items one by one, isolating per-item failures.

    With ``concurrency`` greater than one, up to that many store calls run
    at once; results are still reported in batch order.
    """

    def __init__(
        self,
        store: InventoryStore,
        quota: QuotaProvider | None = None,
        *,
        concurrency: int = 1,
        category: str = DEFAULT_CATEGORY,
        today: Callable[[], date] = date.today,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._store = store
        self._quota = quota
        self._concurrency = concurrency
        self._category = category
        self._today = today

    async def commit(
        self, items: Iterable[CandidateLineItem], owner_key: str
    ) -> CommitResult:
        """Persist ``items`` for ``owner_key``.

        Items beyond the owner's remaining allowance are reported as failed
        with ``QuotaExceeded`` and never reach the store. Store errors are
        logged and recorded per item; none escape.
        """
        batch = list(items)
        result = CommitResult()
        if not batch:
            return result

        allowance = UNLIMITED
        if self._quota is not None:
            allowance = await self._quota.remaining_allowance(
                owner_key, RESOURCE_INVENTORY_ITEMS
            )

        if allowance == UNLIMITED:
            attempt = batch
        else:
            attempt = batch[: max(allowance, 0)]
            if len(attempt) < len(batch):
                logger.info(
                    "owner %s has %d item(s) of allowance left; skipping %d",
                    owner_key,
                    max(allowance, 0),
                    len(batch) - len(attempt),
                )

        date_added = self._today().isoformat()
        semaphore = asyncio.Semaphore(self._concurrency)

        async def persist(index: int, item: CandidateLineItem):
            async with semaphore:
                try:
                    record = InventoryRecord.from_candidate(
                        item,
                        category=self._category,
                        date_added=date_added,
                        description=f"Scanned from receipt on {date_added}",
                    )
                    return await self._store.add_item(record, owner_key)
                except Exception as e:
                    logger.warning("failed to save item %d (%r): %s", index, item.name, e)
                    return FailedItem(index=index, item=item, error=e)

        outcomes = await asyncio.gather(
            *(persist(i, item) for i, item in enumerate(attempt))
        )
        for outcome in outcomes:
            if isinstance(outcome, FailedItem):
                result.failed.append(outcome)
            else:
                result.succeeded.append(outcome)

        for index in range(len(attempt), len(batch)):
            result.failed.append(
                FailedItem(
                    index=index,
                    item=batch[index],
                    error=QuotaExceeded(RESOURCE_INVENTORY_ITEMS),
                )
            )

        logger.info(
            "commit for %s: %d succeeded, %d failed",
            owner_key,
            result.succeeded_count,
            result.failed_count,
        )
        return result
