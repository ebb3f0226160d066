"""
Fixed expense-category taxonomy.

Categories are a closed, ordered table of ``CategoryInfo`` rows keyed by the raw
value that is stored in the ``category`` column. The table order is the order the
reconciler walks categories in, so it must not be re-sorted at runtime.
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence


@dataclass(frozen=True)
class CategoryInfo:
    key: str
    display_name: str
    icon: str
    color: str


EXPENSE_CATEGORIES: tuple[CategoryInfo, ...] = (
    CategoryInfo("EMI", "EMI", "creditcard.and.123", "purple"),
    CategoryInfo("Food", "Food", "fork.knife", "orange"),
    CategoryInfo("Holiday/Trip", "Holiday/Trip", "airplane", "cyan"),
    CategoryInfo("Housing", "Housing", "house.fill", "brown"),
    CategoryInfo("Shopping", "Shopping", "bag.fill", "pink"),
    CategoryInfo("Travel", "Travel", "car.fill", "blue"),
    CategoryInfo("Family", "Family", "person.3.fill", "green"),
    CategoryInfo("Charges/Fees", "Charges/Fees", "dollarsign.circle", "yellow"),
    CategoryInfo("Groceries", "Groceries", "cart.fill", "mint"),
    CategoryInfo("Health/Beauty", "Health/Beauty", "heart.fill", "red"),
    CategoryInfo("Entertainment", "Entertainment", "tv", "indigo"),
    CategoryInfo("Charity/Gift", "Charity/Gift", "gift.fill", "teal"),
    CategoryInfo("Education", "Education", "book.fill", "#339980"),
    CategoryInfo("Vehicle", "Vehicle", "car", "gray"),
    CategoryInfo("Unknown", "Unknown", "questionmark.circle", "secondary"),
)

# Lowercased legacy labels -> canonical key.
EXPENSE_ALIASES: dict[str, str] = {
    "holiday": "Holiday/Trip",
    "trip": "Holiday/Trip",
    "rent": "Housing",
    "transport": "Travel",
    "charges": "Charges/Fees",
    "fees": "Charges/Fees",
    "utilities": "Charges/Fees",
    "health": "Health/Beauty",
    "beauty": "Health/Beauty",
    "personal care": "Health/Beauty",
    "charity": "Charity/Gift",
    "gift": "Charity/Gift",
}


class Taxonomy:
    def __init__(
        self,
        categories: Sequence[CategoryInfo],
        aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.categories = tuple(categories)
        self._by_key = {c.key: c for c in self.categories}
        if len(self._by_key) != len(self.categories):
            raise ValueError("Category keys must be unique")
        self._lookup: dict[str, str] = {c.key.lower(): c.key for c in self.categories}
        for alias, key in (aliases or {}).items():
            if key not in self._by_key:
                raise ValueError(f"Alias {alias!r} points at unknown category {key!r}")
            self._lookup.setdefault(alias.strip().lower(), key)

    def __iter__(self):
        return iter(self.categories)

    def __len__(self) -> int:
        return len(self.categories)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    @property
    def keys(self) -> list[str]:
        return [c.key for c in self.categories]

    def get(self, key: str) -> Optional[CategoryInfo]:
        return self._by_key.get(key)

    def display_name(self, key: str) -> str:
        info = self._by_key.get(key)
        return info.display_name if info else key

    def canonical_key(self, raw: str) -> str:
        """Map a stored label onto its canonical key.

        Exact keys and known aliases (case-insensitive) resolve to the taxonomy
        key; anything else comes back unchanged so it is never merged away.
        """
        if raw in self._by_key:
            return raw
        return self._lookup.get(raw.strip().lower(), raw)

    def ordered(self, keys: Iterable[str]) -> list[str]:
        """Taxonomy keys first in table order, then unknown keys ascending."""
        wanted = set(keys)
        known = [k for k in self.keys if k in wanted]
        extra = sorted(k for k in wanted if k not in self._by_key)
        return known + extra


EXPENSE_TAXONOMY = Taxonomy(EXPENSE_CATEGORIES, EXPENSE_ALIASES)
