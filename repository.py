from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, Optional, Protocol, Sequence

from sqlalchemy import Date, Table, delete, select, update
from sqlalchemy.orm import Session

from models import BudgetEntry, Expense

Operator = Literal["eq", "gte", "lt"]
Row = dict[str, Any]

OPERATORS = ("eq", "gte", "lt")

MAPPED_TABLES = {
    BudgetEntry.__tablename__: BudgetEntry,
    Expense.__tablename__: Expense,
}


@dataclass(frozen=True)
class RowFilter:
    column: str
    operator: Operator
    value: Any

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.operator}")


class RowStore(Protocol):
    def fetch_rows(
        self,
        table: str,
        filters: Sequence[RowFilter],
        order_by: Optional[str] = None,
    ) -> list[Row]: ...

    def insert(self, table: str, row: Row) -> Row: ...

    def update(
        self, table: str, row: Row, row_id: Any, scope: Sequence[RowFilter] = ()
    ) -> None: ...

    def delete(
        self, table: str, row_id: Any, scope: Sequence[RowFilter] = ()
    ) -> None: ...


class RowNotFound(LookupError):
    pass


class SQLRowStore:
    """RowStore over the local SQLAlchemy tables.

    Every write commits on its own, so each op succeeds or fails independently
    of its siblings.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    @staticmethod
    def _table(name: str) -> Table:
        mapped = MAPPED_TABLES.get(name)
        if mapped is None:
            raise ValueError(f"Unknown table: {name}")
        return mapped.__table__

    @staticmethod
    def _coerce(table: Table, column: str, value: Any) -> Any:
        if column not in table.c:
            raise ValueError(f"Unknown column {table.name}.{column}")
        # Period strings such as "2025-07-01" are the store's date format.
        if isinstance(table.c[column].type, Date) and isinstance(value, str):
            return date.fromisoformat(value)
        return value

    def _coerce_row(self, table: Table, row: Row) -> Row:
        return {key: self._coerce(table, key, value) for key, value in row.items()}

    def _where(self, table: Table, filters: Sequence[RowFilter]) -> list:
        clauses = []
        for flt in filters:
            value = self._coerce(table, flt.column, flt.value)
            column = table.c[flt.column]
            if flt.operator == "eq":
                clauses.append(column == value)
            elif flt.operator == "gte":
                clauses.append(column >= value)
            else:
                clauses.append(column < value)
        return clauses

    def fetch_rows(
        self,
        table: str,
        filters: Sequence[RowFilter],
        order_by: Optional[str] = None,
    ) -> list[Row]:
        tbl = self._table(table)
        stmt = select(tbl).where(*self._where(tbl, filters))
        if order_by:
            if order_by not in tbl.c:
                raise ValueError(f"Unknown column {table}.{order_by}")
            stmt = stmt.order_by(tbl.c[order_by], tbl.c.id)
        else:
            stmt = stmt.order_by(tbl.c.id)
        return [dict(row._mapping) for row in self.session.execute(stmt)]

    def insert(self, table: str, row: Row) -> Row:
        tbl = self._table(table)
        obj = MAPPED_TABLES[table](**self._coerce_row(tbl, row))
        self.session.add(obj)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(obj)
        return {c.name: getattr(obj, c.key) for c in tbl.columns}

    def update(
        self, table: str, row: Row, row_id: Any, scope: Sequence[RowFilter] = ()
    ) -> None:
        """Update one row by id; rows outside ``scope`` count as missing."""
        tbl = self._table(table)
        values = self._coerce_row(tbl, row)
        where = [tbl.c.id == row_id, *self._where(tbl, scope)]
        try:
            result = self.session.execute(update(tbl).where(*where).values(**values))
            if result.rowcount == 0:
                raise RowNotFound(f"{table} row {row_id} not found")
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def delete(
        self, table: str, row_id: Any, scope: Sequence[RowFilter] = ()
    ) -> None:
        tbl = self._table(table)
        where = [tbl.c.id == row_id, *self._where(tbl, scope)]
        try:
            result = self.session.execute(delete(tbl).where(*where))
            if result.rowcount == 0:
                raise RowNotFound(f"{table} row {row_id} not found")
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
