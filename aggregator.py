"""
Spending-by-category aggregation for one budget period.

The aggregator joins budget allocations and expense records in memory, one
``CategorySummary`` per category that has an allocation or spending, sorted so
problems surface first: Overspent, then Unplanned, then everything else, each
group by display name.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

from amounts import ZERO
from exceptions import DuplicateAllocationError
from taxonomy import EXPENSE_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

RowId = Union[int, str]


@dataclass(frozen=True)
class BudgetAllocation:
    category_key: str
    amount: Decimal
    period_start: date
    id: Optional[RowId] = None


@dataclass(frozen=True)
class TransactionRecord:
    id: RowId
    category_key: str
    amount: Decimal
    occurred_on: date


class CategoryStatus(str, Enum):
    no_budget = "NoBudget"
    unplanned = "Unplanned"
    overspent = "Overspent"
    on_track = "OnTrack"

    @property
    def priority(self) -> int:
        return _STATUS_PRIORITY[self]


_STATUS_PRIORITY = {
    CategoryStatus.overspent: 3,
    CategoryStatus.unplanned: 2,
    CategoryStatus.on_track: 1,
    CategoryStatus.no_budget: 1,
}


def classify(budgeted: Decimal, spent: Decimal) -> CategoryStatus:
    if budgeted == 0:
        if spent > 0:
            return CategoryStatus.unplanned
        return CategoryStatus.no_budget
    if spent > budgeted:
        return CategoryStatus.overspent
    return CategoryStatus.on_track


@dataclass(frozen=True)
class CategorySummary:
    category_key: str
    display_name: str
    budgeted: Decimal
    spent: Decimal
    status: CategoryStatus

    @property
    def remaining(self) -> Decimal:
        return self.budgeted - self.spent

    @property
    def progress(self) -> Optional[Decimal]:
        """Share of the budget used, ``None`` when nothing was budgeted."""
        if self.budgeted == 0:
            return None
        return self.spent / self.budgeted


@dataclass(frozen=True)
class BudgetOverview:
    categories: list[CategorySummary] = field(default_factory=list)
    total_budgeted: Decimal = ZERO
    total_spent: Decimal = ZERO

    @property
    def total_remaining(self) -> Decimal:
        return self.total_budgeted - self.total_spent

    def original_amounts(self) -> dict[str, Decimal]:
        return {c.category_key: c.budgeted for c in self.categories}


def sort_key(summary: CategorySummary) -> tuple[int, str]:
    # Ordinal string comparison; no locale collation.
    return (-summary.status.priority, summary.display_name)


def _check_duplicates(allocations: Iterable[BudgetAllocation]) -> None:
    counts = Counter(a.category_key for a in allocations)
    duplicates = [key for key, count in counts.items() if count > 1]
    if duplicates:
        raise DuplicateAllocationError(duplicates)


def aggregate(
    allocations: Sequence[BudgetAllocation],
    transactions: Sequence[TransactionRecord],
    taxonomy: Taxonomy = EXPENSE_TAXONOMY,
) -> BudgetOverview:
    _check_duplicates(allocations)

    # Insertion order (allocations first, then transactions) is the input order
    # the stable sort preserves for full ties.
    budget_by_category: dict[str, Decimal] = {}
    for allocation in allocations:
        budget_by_category[allocation.category_key] = allocation.amount

    spent_by_category: dict[str, Decimal] = {}
    for txn in transactions:
        spent_by_category[txn.category_key] = (
            spent_by_category.get(txn.category_key, ZERO) + txn.amount
        )

    keys = list(dict.fromkeys([*budget_by_category, *spent_by_category]))
    summaries: list[CategorySummary] = []
    for key in keys:
        budgeted = budget_by_category.get(key, ZERO)
        spent = spent_by_category.get(key, ZERO)
        summaries.append(
            CategorySummary(
                category_key=key,
                display_name=taxonomy.display_name(key),
                budgeted=budgeted,
                spent=spent,
                status=classify(budgeted, spent),
            )
        )
    summaries.sort(key=sort_key)

    total_budgeted = sum((a.amount for a in allocations), ZERO)
    total_spent = sum((t.amount for t in transactions), ZERO)
    logger.debug(
        f"aggregate: allocations={len(allocations)} transactions={len(transactions)} "
        f"categories={len(summaries)}"
    )
    return BudgetOverview(
        categories=summaries,
        total_budgeted=total_budgeted,
        total_spent=total_spent,
    )


def original_budget_map(
    allocations: Sequence[BudgetAllocation],
    taxonomy: Taxonomy = EXPENSE_TAXONOMY,
) -> tuple[dict[str, Decimal], dict[str, RowId]]:
    """Build the ``(original, original_ids)`` pair an edit starts from.

    ``original`` covers every taxonomy category (0 where nothing is allocated)
    plus any stray category found in the allocations. ``original_ids`` only has
    entries for allocations that carry a persisted id.
    """
    _check_duplicates(allocations)
    original: dict[str, Decimal] = {key: ZERO for key in taxonomy.keys}
    original_ids: dict[str, RowId] = {}
    for allocation in allocations:
        original[allocation.category_key] = allocation.amount
        if allocation.id is not None:
            original_ids[allocation.category_key] = allocation.id
    return original, original_ids
