"""
Async period loading.

Both fetches for a period run concurrently in worker threads and are joined
before aggregation, so a half-loaded period is never aggregated. Starting a
load for another period cancels the one in flight; a superseded load returns
``None`` instead of an overview.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, ContextManager, Optional, Sequence

from sqlalchemy.orm import Session

from aggregator import BudgetAllocation, BudgetOverview, TransactionRecord, aggregate
from database import session_scope
from periods import BudgetPeriod
from repository import SQLRowStore
from services import BudgetService
from taxonomy import EXPENSE_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

FetchAllocations = Callable[[BudgetPeriod], Sequence[BudgetAllocation]]
FetchTransactions = Callable[[BudgetPeriod], Sequence[TransactionRecord]]


async def load_overview(
    period: BudgetPeriod,
    fetch_allocations: FetchAllocations,
    fetch_transactions: FetchTransactions,
    taxonomy: Taxonomy = EXPENSE_TAXONOMY,
) -> BudgetOverview:
    allocations, transactions = await asyncio.gather(
        asyncio.to_thread(fetch_allocations, period),
        asyncio.to_thread(fetch_transactions, period),
    )
    return aggregate(list(allocations), list(transactions), taxonomy)


class PeriodLoader:
    def __init__(
        self,
        fetch_allocations: FetchAllocations,
        fetch_transactions: FetchTransactions,
        *,
        taxonomy: Taxonomy = EXPENSE_TAXONOMY,
    ) -> None:
        self.fetch_allocations = fetch_allocations
        self.fetch_transactions = fetch_transactions
        self.taxonomy = taxonomy
        self.period: Optional[BudgetPeriod] = None
        self.overview: Optional[BudgetOverview] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def loading(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def cancel(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()

    async def load(self, period: BudgetPeriod) -> Optional[BudgetOverview]:
        """Load and aggregate ``period``; ``None`` if a newer load replaced it."""
        self.cancel()
        task = asyncio.ensure_future(
            load_overview(
                period, self.fetch_allocations, self.fetch_transactions, self.taxonomy
            )
        )
        self._inflight = task
        self.period = period
        try:
            overview = await task
        except asyncio.CancelledError:
            if self._inflight is not task:
                logger.info(f"period_load_superseded: period={period.slug}")
                return None
            raise
        if self._inflight is not task:
            logger.info(f"period_load_superseded: period={period.slug}")
            return None
        self.overview = overview
        return overview

    async def refresh(self) -> Optional[BudgetOverview]:
        if self.period is None:
            raise RuntimeError("Nothing loaded yet")
        return await self.load(self.period)


def store_loader(
    user_id: Optional[int] = None,
    *,
    session_factory: Callable[[], ContextManager[Session]] = session_scope,
    taxonomy: Taxonomy = EXPENSE_TAXONOMY,
) -> PeriodLoader:
    """PeriodLoader reading from the database.

    The fetches run in separate threads, so each one opens its own session.
    """

    def fetch_allocations(period: BudgetPeriod) -> list[BudgetAllocation]:
        with session_factory() as session:
            svc = BudgetService(SQLRowStore(session), user_id, taxonomy=taxonomy)
            return svc.fetch_allocations(period)

    def fetch_transactions(period: BudgetPeriod) -> list[TransactionRecord]:
        with session_factory() as session:
            svc = BudgetService(SQLRowStore(session), user_id, taxonomy=taxonomy)
            return svc.fetch_transactions(period)

    return PeriodLoader(fetch_allocations, fetch_transactions, taxonomy=taxonomy)
