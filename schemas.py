import datetime as dt
from datetime import date
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aggregator import BudgetAllocation, CategorySummary, TransactionRecord
from periods import BudgetPeriod, parse_month
from reconciler import Delete, Insert, ReconciliationOp, Skip, Update

NonNegativeAmount = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class AllocationRow(BaseModel):
    """A ``budget`` row as returned by the store."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    date: dt.date

    def to_allocation(self, category_key: Optional[str] = None) -> BudgetAllocation:
        return BudgetAllocation(
            id=self.id,
            category_key=category_key or self.category,
            amount=self.amount,
            period_start=self.date,
        )


class ExpenseRow(BaseModel):
    """An ``expenses`` row as returned by the store."""

    model_config = ConfigDict(extra="ignore")

    id: int
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)
    date: dt.date

    def to_record(self, category_key: Optional[str] = None) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            category_key=category_key or self.category,
            amount=self.amount,
            occurred_on=self.date,
        )


class _MonthPayload(BaseModel):
    month: str = Field(..., description="Period as YYYY-MM")

    @field_validator("month")
    @classmethod
    def _valid_month(cls, value: str) -> str:
        parse_month(value)
        return value

    @property
    def period(self) -> BudgetPeriod:
        return parse_month(self.month)


class BudgetEditIn(_MonthPayload):
    original: dict[str, NonNegativeAmount]
    original_ids: dict[str, int] = Field(default_factory=dict)
    edited: dict[str, NonNegativeAmount]


class SaveBudgetIn(_MonthPayload):
    amounts: dict[str, NonNegativeAmount]


class InsertOpIn(BaseModel):
    kind: Literal["insert"]
    category_key: str
    amount: NonNegativeAmount
    period_start: date


class UpdateOpIn(BaseModel):
    kind: Literal["update"]
    id: int
    category_key: str
    amount: NonNegativeAmount


class DeleteOpIn(BaseModel):
    kind: Literal["delete"]
    id: int
    category_key: str


OpIn = Annotated[
    Union[InsertOpIn, UpdateOpIn, DeleteOpIn], Field(discriminator="kind")
]


class RetryIn(_MonthPayload):
    ops: list[OpIn] = Field(..., min_length=1)

    def to_ops(self) -> list[ReconciliationOp]:
        ops: list[ReconciliationOp] = []
        for op in self.ops:
            if isinstance(op, InsertOpIn):
                ops.append(Insert(op.category_key, op.amount, op.period_start))
            elif isinstance(op, UpdateOpIn):
                ops.append(Update(op.id, op.amount, op.category_key))
            else:
                ops.append(Delete(op.id, op.category_key))
        return ops


def op_out(op: ReconciliationOp) -> dict:
    if isinstance(op, Insert):
        return {
            "kind": op.kind,
            "category_key": op.category_key,
            "amount": str(op.amount),
            "period_start": op.period_start.isoformat(),
        }
    if isinstance(op, Update):
        return {
            "kind": op.kind,
            "id": op.id,
            "category_key": op.category_key,
            "amount": str(op.amount),
        }
    if isinstance(op, Delete):
        return {"kind": op.kind, "id": op.id, "category_key": op.category_key}
    if isinstance(op, Skip):
        return {"kind": op.kind, "category_key": op.category_key}
    raise TypeError(f"Unknown op {op!r}")


class CategorySummaryOut(BaseModel):
    category_key: str
    display_name: str
    budgeted: Decimal
    spent: Decimal
    remaining: Decimal
    progress: Optional[Decimal]
    status: str

    @classmethod
    def from_summary(cls, summary: CategorySummary) -> "CategorySummaryOut":
        return cls(
            category_key=summary.category_key,
            display_name=summary.display_name,
            budgeted=summary.budgeted,
            spent=summary.spent,
            remaining=summary.remaining,
            progress=summary.progress,
            status=summary.status.value,
        )
