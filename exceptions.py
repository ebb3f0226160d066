"""
Exception hierarchy for the budget engine.

Everything raised on purpose by the engine or the host service derives from
BudgetEngineError so API handlers can translate it in one place.
"""

from typing import Iterable, Optional


class BudgetEngineError(Exception):
    """
    Base exception for budget engine errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        msg = self.message
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            msg = f"{msg} ({detail_str})"
        return msg


class DuplicateAllocationError(BudgetEngineError, ValueError):
    """Raised when one period holds more than one allocation for a category."""

    def __init__(self, category_keys: Iterable[str]) -> None:
        self.category_keys = sorted(set(category_keys))
        super().__init__(
            "Duplicate budget allocations for category",
            {"categories": "|".join(self.category_keys)},
        )


class InvalidPeriodError(BudgetEngineError, ValueError):
    """Raised when a month/year pair cannot be turned into a budget period."""
    pass
