"""
Budget reconciliation.

``reconcile`` diffs the amounts a user edited against the amounts that were
persisted when the edit started and returns one operation per category:

* unchanged amount -> ``Skip``
* new amount > 0 and a persisted row -> ``Update``
* new amount > 0 and no persisted row -> ``Insert``
* new amount == 0 and a persisted row -> ``Delete``
* new amount == 0 and nothing persisted -> ``Skip``

Amounts are compared with exact Decimal equality. Ops are independent of each
other and may be applied in any order.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Optional, Union

from amounts import ZERO, AmountLike, to_decimal
from taxonomy import EXPENSE_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

RowId = Union[int, str]


@dataclass(frozen=True)
class Insert:
    category_key: str
    amount: Decimal
    period_start: date

    kind = "insert"


@dataclass(frozen=True)
class Update:
    id: RowId
    amount: Decimal
    category_key: str

    kind = "update"


@dataclass(frozen=True)
class Delete:
    id: RowId
    category_key: str

    kind = "delete"


@dataclass(frozen=True)
class Skip:
    category_key: str

    kind = "skip"


ReconciliationOp = Union[Insert, Update, Delete, Skip]


def _amount(values: Mapping[str, AmountLike], key: str) -> Decimal:
    raw = values.get(key)
    if raw is None:
        return ZERO
    return to_decimal(raw)


def reconcile_category(
    key: str,
    before: Decimal,
    after: Decimal,
    existing_id: Optional[RowId],
    period_start: date,
) -> ReconciliationOp:
    if before == after:
        return Skip(key)
    if after > 0:
        if existing_id is not None:
            return Update(id=existing_id, amount=after, category_key=key)
        return Insert(category_key=key, amount=after, period_start=period_start)
    if existing_id is not None:
        return Delete(id=existing_id, category_key=key)
    # Amount went to zero but nothing was ever persisted.
    return Skip(key)


def reconcile(
    original: Mapping[str, AmountLike],
    original_ids: Mapping[str, RowId],
    edited: Mapping[str, AmountLike],
    *,
    period_start: date,
    taxonomy: Taxonomy = EXPENSE_TAXONOMY,
) -> list[ReconciliationOp]:
    """Return one op per category, taxonomy order first, then stray keys ascending.

    None of the input mappings are modified.
    """
    keys = taxonomy.ordered(set(original) | set(edited) | set(original_ids))
    ops: list[ReconciliationOp] = []
    for key in keys:
        before = _amount(original, key)
        after = _amount(edited, key)
        ops.append(
            reconcile_category(key, before, after, original_ids.get(key), period_start)
        )
    logger.debug(
        f"reconcile: period={period_start.isoformat()} categories={len(ops)} "
        f"writes={sum(1 for op in ops if not isinstance(op, Skip))}"
    )
    return ops


def pending_ops(ops: list[ReconciliationOp]) -> list[ReconciliationOp]:
    return [op for op in ops if not isinstance(op, Skip)]


def changed_keys(
    original: Mapping[str, AmountLike], edited: Mapping[str, AmountLike]
) -> set[str]:
    return {
        key
        for key in set(original) | set(edited)
        if _amount(original, key) != _amount(edited, key)
    }


def apply_ops_to_snapshot(
    amounts: Mapping[str, AmountLike],
    ids: Mapping[str, RowId],
    ops: list[ReconciliationOp],
) -> tuple[dict[str, Decimal], dict[str, RowId]]:
    """Apply ops to an in-memory ``(amounts, ids)`` snapshot of the store.

    Only persisted rows are kept: categories without an id are dropped from the
    starting snapshot. Inserted rows get synthetic ids ``new:<key>``.
    """
    store: dict[RowId, tuple[str, Decimal]] = {
        row_id: (key, _amount(amounts, key)) for key, row_id in ids.items()
    }
    for op in ops:
        if isinstance(op, Insert):
            store[f"new:{op.category_key}"] = (op.category_key, op.amount)
        elif isinstance(op, Update):
            if op.id not in store:
                raise KeyError(op.id)
            key, _ = store[op.id]
            store[op.id] = (key, op.amount)
        elif isinstance(op, Delete):
            if op.id not in store:
                raise KeyError(op.id)
            del store[op.id]

    result_amounts: dict[str, Decimal] = {}
    result_ids: dict[str, RowId] = {}
    for row_id, (key, amount) in store.items():
        if key in result_amounts:
            raise ValueError(f"Two rows for category {key!r}")
        result_amounts[key] = amount
        result_ids[key] = row_id
    return result_amounts, result_ids
