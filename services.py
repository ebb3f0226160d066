from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Mapping, Optional, Sequence

from aggregator import (
    BudgetAllocation,
    BudgetOverview,
    TransactionRecord,
    aggregate,
    original_budget_map,
)
from amounts import ZERO, AmountLike, quantize_amount, to_decimal
from config import get_settings
from periods import BudgetPeriod
from reconciler import (
    Delete,
    Insert,
    ReconciliationOp,
    RowId,
    Skip,
    Update,
    pending_ops,
    reconcile,
)
from repository import RowFilter, RowStore
from schemas import AllocationRow, ExpenseRow
from taxonomy import EXPENSE_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

BUDGET_TABLE = "budget"
EXPENSES_TABLE = "expenses"


def get_current_user_id() -> int:
    return get_settings().user_id


@dataclass
class BudgetDraft:
    """Amounts being edited for one month, next to the snapshot they started from."""

    period: BudgetPeriod
    original: dict[str, Decimal]
    original_ids: dict[str, RowId]
    edited: dict[str, Decimal]

    def set_amount(self, category_key: str, amount: AmountLike) -> None:
        if category_key not in self.original:
            raise ValueError(f"Unknown category: {category_key}")
        value = quantize_amount(to_decimal(amount))
        if value < 0:
            raise ValueError("Amount must be positive")
        self.edited[category_key] = value

    @property
    def total(self) -> Decimal:
        return sum(self.edited.values(), ZERO)

    @property
    def has_changes(self) -> bool:
        return any(
            self.edited.get(key, ZERO) != self.original.get(key, ZERO)
            for key in set(self.original) | set(self.edited)
        )

    @property
    def categories_with_budget(self) -> int:
        return sum(1 for amount in self.edited.values() if amount > 0)

    @property
    def can_submit(self) -> bool:
        return self.total > 0 and self.has_changes

    def ops(self, taxonomy: Taxonomy = EXPENSE_TAXONOMY) -> list[ReconciliationOp]:
        return reconcile(
            self.original,
            self.original_ids,
            self.edited,
            period_start=self.period.start,
            taxonomy=taxonomy,
        )


@dataclass(frozen=True)
class FailedOp:
    op: ReconciliationOp
    error: str


@dataclass
class ApplyResult:
    period: BudgetPeriod
    ops: list[ReconciliationOp]
    succeeded: list[ReconciliationOp] = field(default_factory=list)
    failed: list[FailedOp] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def status(self) -> str:
        if not self.failed:
            return "ok" if self.succeeded else "noop"
        return "partial" if self.succeeded else "failed"

    @property
    def failed_ops(self) -> list[ReconciliationOp]:
        return [f.op for f in self.failed]

    @property
    def failed_categories(self) -> list[str]:
        return [f.op.category_key for f in self.failed]


class BudgetService:
    def __init__(
        self,
        store: RowStore,
        user_id: Optional[int] = None,
        *,
        taxonomy: Taxonomy = EXPENSE_TAXONOMY,
        normalize_aliases: Optional[bool] = None,
        on_change: Optional[Callable[[BudgetPeriod], None]] = None,
    ) -> None:
        self.store = store
        self.user_id = get_current_user_id() if user_id is None else user_id
        self.taxonomy = taxonomy
        if normalize_aliases is None:
            normalize_aliases = get_settings().normalize_aliases
        self.normalize_aliases = normalize_aliases
        self.on_change = on_change

    def _write_scope(self, period: BudgetPeriod) -> list[RowFilter]:
        return [
            RowFilter("user_id", "eq", self.user_id),
            RowFilter("date", "eq", period.start_iso),
        ]

    def _category_key(self, raw: str) -> str:
        if self.normalize_aliases:
            return self.taxonomy.canonical_key(raw)
        return raw

    # Reads

    def fetch_allocations(self, period: BudgetPeriod) -> list[BudgetAllocation]:
        rows = self.store.fetch_rows(
            BUDGET_TABLE,
            [
                RowFilter("user_id", "eq", self.user_id),
                RowFilter("date", "eq", period.start_iso),
            ],
            order_by="category",
        )
        allocations = []
        for raw in rows:
            row = AllocationRow.model_validate(raw)
            allocations.append(row.to_allocation(self._category_key(row.category)))
        return allocations

    def fetch_transactions(self, period: BudgetPeriod) -> list[TransactionRecord]:
        rows = self.store.fetch_rows(
            EXPENSES_TABLE,
            [
                RowFilter("user_id", "eq", self.user_id),
                RowFilter("date", "gte", period.start_iso),
                RowFilter("date", "lt", period.next_start_iso),
            ],
            order_by="date",
        )
        records = []
        for raw in rows:
            row = ExpenseRow.model_validate(raw)
            records.append(row.to_record(self._category_key(row.category)))
        return records

    def overview(self, period: BudgetPeriod) -> BudgetOverview:
        allocations = self.fetch_allocations(period)
        transactions = self.fetch_transactions(period)
        return aggregate(allocations, transactions, self.taxonomy)

    def draft(self, period: BudgetPeriod) -> BudgetDraft:
        original, original_ids = original_budget_map(
            self.fetch_allocations(period), self.taxonomy
        )
        return BudgetDraft(
            period=period,
            original=original,
            original_ids=original_ids,
            edited=dict(original),
        )

    # Writes

    def apply(
        self,
        period: BudgetPeriod,
        original: Mapping[str, AmountLike],
        original_ids: Mapping[str, RowId],
        edited: Mapping[str, AmountLike],
    ) -> ApplyResult:
        # The amount column holds cents; compare what will actually be stored.
        stored = {key: quantize_amount(to_decimal(amount)) for key, amount in edited.items()}
        ops = reconcile(
            original,
            original_ids,
            stored,
            period_start=period.start,
            taxonomy=self.taxonomy,
        )
        return self.execute(period, ops)

    def apply_draft(self, draft: BudgetDraft) -> ApplyResult:
        return self.apply(draft.period, draft.original, draft.original_ids, draft.edited)

    def save_budget(
        self, period: BudgetPeriod, amounts: Mapping[str, AmountLike]
    ) -> ApplyResult:
        """Set the whole month's budget; categories left out end up with none."""
        values = {
            key: quantize_amount(to_decimal(amount)) for key, amount in amounts.items()
        }
        unknown = sorted(key for key in values if key not in self.taxonomy)
        if unknown:
            raise ValueError(f"Unknown category: {', '.join(unknown)}")
        if not any(amount > 0 for amount in values.values()):
            raise ValueError("Please set at least one budget category")
        draft = self.draft(period)
        edited = {key: values.get(key, ZERO) for key in draft.original}
        return self.apply(period, draft.original, draft.original_ids, edited)

    def retry(self, result: ApplyResult) -> ApplyResult:
        return self.execute(result.period, result.failed_ops)

    def execute(
        self, period: BudgetPeriod, ops: Sequence[ReconciliationOp]
    ) -> ApplyResult:
        result = ApplyResult(period=period, ops=list(ops))
        for op in pending_ops(result.ops):
            try:
                self._execute_op(period, op)
            except Exception as exc:
                logger.warning(
                    f"budget_op_failed: period={period.slug} op={op.kind} "
                    f"category={op.category_key}",
                    exc_info=True,
                )
                result.failed.append(FailedOp(op=op, error=str(exc)))
            else:
                result.succeeded.append(op)
        logger.info(
            f"budget_apply: period={period.slug} ops={len(result.succeeded) + len(result.failed)} "
            f"failed={len(result.failed)}"
        )
        if result.succeeded and self.on_change is not None:
            self.on_change(period)
        return result

    def _execute_op(self, period: BudgetPeriod, op: ReconciliationOp) -> None:
        if isinstance(op, Insert):
            if op.period_start != period.start:
                raise ValueError("Insert does not belong to this period")
            self.store.insert(
                BUDGET_TABLE,
                {
                    "user_id": self.user_id,
                    "date": period.start_iso,
                    "category": op.category_key,
                    "amount": op.amount,
                },
            )
        elif isinstance(op, Update):
            self.store.update(
                BUDGET_TABLE, {"amount": op.amount}, op.id, self._write_scope(period)
            )
        elif isinstance(op, Delete):
            self.store.delete(BUDGET_TABLE, op.id, self._write_scope(period))
        elif not isinstance(op, Skip):
            raise TypeError(f"Unknown op {op!r}")
