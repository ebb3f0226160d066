from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from exceptions import InvalidPeriodError


@dataclass(frozen=True, order=True)
class BudgetPeriod:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError("Month must be between 1 and 12", {"month": self.month})
        if not 1970 <= self.year <= 3000:
            raise InvalidPeriodError("Year out of range", {"year": self.year})

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def next_start(self) -> date:
        if self.month == 12:
            return date(self.year + 1, 1, 1)
        return date(self.year, self.month + 1, 1)

    @property
    def start_iso(self) -> str:
        # Built from calendar components so no timezone can shift the day.
        return f"{self.year:04d}-{self.month:02d}-01"

    @property
    def next_start_iso(self) -> str:
        nxt = self.next()
        return nxt.start_iso

    @property
    def slug(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> "BudgetPeriod":
        if self.month == 12:
            return BudgetPeriod(self.year + 1, 1)
        return BudgetPeriod(self.year, self.month + 1)

    def previous(self) -> "BudgetPeriod":
        if self.month == 1:
            return BudgetPeriod(self.year - 1, 12)
        return BudgetPeriod(self.year, self.month - 1)

    def contains(self, day: date) -> bool:
        return self.start <= day < self.next_start

    @classmethod
    def from_date(cls, day: date) -> "BudgetPeriod":
        return cls(day.year, day.month)


def parse_month(value: str) -> BudgetPeriod:
    """Parse ``YYYY-MM`` (or a full ``YYYY-MM-DD`` period start) into a period."""
    raw = (value or "").strip()
    parts = raw.split("-")
    if len(parts) not in (2, 3):
        raise InvalidPeriodError("Month must look like YYYY-MM", {"value": raw})
    try:
        year = int(parts[0])
        month = int(parts[1])
    except ValueError as exc:
        raise InvalidPeriodError("Month must look like YYYY-MM", {"value": raw}) from exc
    if len(parts) == 3 and parts[2] != "01":
        raise InvalidPeriodError("Period start must be the first day", {"value": raw})
    return BudgetPeriod(year, month)


def current_period(timezone: str, *, now: Optional[datetime] = None) -> BudgetPeriod:
    now = now or datetime.now(ZoneInfo(timezone))
    return BudgetPeriod(now.year, now.month)


def resolve_period(
    month: Optional[str], *, timezone: str, today: Optional[date] = None
) -> BudgetPeriod:
    if month:
        return parse_month(month)
    if today is not None:
        return BudgetPeriod.from_date(today)
    return current_period(timezone)
