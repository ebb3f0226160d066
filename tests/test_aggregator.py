from datetime import date
from decimal import Decimal

import pytest

from aggregator import (
    BudgetAllocation,
    CategoryStatus,
    CategorySummary,
    TransactionRecord,
    aggregate,
    classify,
    original_budget_map,
)
from exceptions import DuplicateAllocationError
from taxonomy import EXPENSE_TAXONOMY, CategoryInfo, Taxonomy

JULY = date(2025, 7, 1)


def alloc(key: str, amount: str, row_id=None) -> BudgetAllocation:
    return BudgetAllocation(
        id=row_id, category_key=key, amount=Decimal(amount), period_start=JULY
    )


def txn(row_id: int, key: str, amount: str, day: int = 10) -> TransactionRecord:
    return TransactionRecord(
        id=row_id,
        category_key=key,
        amount=Decimal(amount),
        occurred_on=date(2025, 7, day),
    )


def test_overspent_sorted_before_unplanned_with_totals() -> None:
    overview = aggregate(
        [alloc("Food", "1000")],
        [txn(1, "Food", "1200"), txn(2, "Transport", "300")],
    )

    assert overview.categories == [
        CategorySummary("Food", "Food", Decimal("1000"), Decimal("1200"), CategoryStatus.overspent),
        CategorySummary("Transport", "Transport", Decimal("0"), Decimal("300"), CategoryStatus.unplanned),
    ]
    assert overview.total_budgeted == Decimal("1000")
    assert overview.total_spent == Decimal("1500")


def test_empty_input_is_empty_overview() -> None:
    overview = aggregate([], [])
    assert overview.categories == []
    assert overview.total_budgeted == 0
    assert overview.total_spent == 0


def test_spending_is_summed_per_category() -> None:
    overview = aggregate(
        [alloc("Groceries", "400")],
        [
            txn(1, "Groceries", "120.50"),
            txn(2, "Groceries", "79.50"),
            txn(3, "Groceries", "100"),
        ],
    )
    (groceries,) = overview.categories
    assert groceries.spent == Decimal("300.00")
    assert groceries.status == CategoryStatus.on_track
    assert groceries.remaining == Decimal("100.00")
    assert groceries.progress == Decimal("0.75")


def test_budget_without_spending_is_on_track_and_kept() -> None:
    overview = aggregate([alloc("Housing", "1500")], [])
    (housing,) = overview.categories
    assert housing.spent == 0
    assert housing.status == CategoryStatus.on_track


def test_zero_allocation_without_spending_is_no_budget() -> None:
    overview = aggregate([alloc("Vehicle", "0")], [])
    assert overview.categories[0].status == CategoryStatus.no_budget
    assert overview.categories[0].progress is None


def test_spending_equal_to_budget_is_on_track() -> None:
    assert classify(Decimal("100"), Decimal("100")) == CategoryStatus.on_track


@pytest.mark.parametrize(
    "budgeted,spent,expected",
    [
        ("0", "0", CategoryStatus.no_budget),
        ("0", "0.01", CategoryStatus.unplanned),
        ("10", "10.01", CategoryStatus.overspent),
        ("10", "0", CategoryStatus.on_track),
        ("10", "9.99", CategoryStatus.on_track),
    ],
)
def test_classification_table(budgeted: str, spent: str, expected: CategoryStatus) -> None:
    assert classify(Decimal(budgeted), Decimal(spent)) == expected


def test_sort_groups_by_priority_then_display_name() -> None:
    overview = aggregate(
        [
            alloc("Shopping", "100"),
            alloc("Food", "50"),
            alloc("Education", "10"),
            alloc("Vehicle", "0"),
            alloc("EMI", "500"),
        ],
        [
            txn(1, "Shopping", "150"),
            txn(2, "Education", "20"),
            txn(3, "Travel", "30"),
            txn(4, "Charity/Gift", "5"),
            txn(5, "Food", "10"),
        ],
    )
    assert [(c.category_key, c.status) for c in overview.categories] == [
        ("Education", CategoryStatus.overspent),
        ("Shopping", CategoryStatus.overspent),
        ("Charity/Gift", CategoryStatus.unplanned),
        ("Travel", CategoryStatus.unplanned),
        ("EMI", CategoryStatus.on_track),
        ("Food", CategoryStatus.on_track),
        ("Vehicle", CategoryStatus.no_budget),
    ]


def test_display_name_order_is_ordinal_not_locale() -> None:
    overview = aggregate([], [txn(1, "apple", "1"), txn(2, "Zebra", "1")])
    # Uppercase sorts before lowercase in code-point order.
    assert [c.category_key for c in overview.categories] == ["Zebra", "apple"]


def test_unknown_category_keeps_raw_key_as_display_name() -> None:
    overview = aggregate([], [txn(1, "Pets", "42")])
    (pets,) = overview.categories
    assert pets.category_key == "Pets"
    assert pets.display_name == "Pets"
    assert pets.status == CategoryStatus.unplanned


def test_totals_match_raw_input() -> None:
    allocations = [alloc("Food", "100"), alloc("Vehicle", "0"), alloc("Housing", "900.25")]
    transactions = [txn(1, "Pets", "3.10"), txn(2, "Food", "96.90"), txn(3, "Food", "0")]
    overview = aggregate(allocations, transactions)
    assert overview.total_budgeted == Decimal("1000.25")
    assert overview.total_spent == Decimal("100.00")
    assert overview.total_remaining == Decimal("900.25")


def test_each_category_appears_once() -> None:
    overview = aggregate(
        [alloc("Food", "10")],
        [txn(1, "Food", "1"), txn(2, "Food", "2"), txn(3, "Travel", "4")],
    )
    keys = [c.category_key for c in overview.categories]
    assert sorted(keys) == ["Food", "Travel"]


def test_duplicate_allocations_are_rejected() -> None:
    with pytest.raises(DuplicateAllocationError) as excinfo:
        aggregate([alloc("Food", "10", 1), alloc("Food", "20", 2)], [])
    assert excinfo.value.category_keys == ["Food"]


def test_aggregate_does_not_mutate_inputs() -> None:
    allocations = [alloc("Food", "10")]
    transactions = [txn(1, "Food", "5")]
    aggregate(allocations, transactions)
    assert allocations == [alloc("Food", "10")]
    assert transactions == [txn(1, "Food", "5")]


def test_original_budget_map_covers_whole_taxonomy() -> None:
    original, ids = original_budget_map(
        [alloc("Food", "1000", 7), alloc("Housing", "1500", 9)]
    )
    assert set(original) == set(EXPENSE_TAXONOMY.keys)
    assert original["Food"] == Decimal("1000")
    assert original["Vehicle"] == Decimal("0")
    assert ids == {"Food": 7, "Housing": 9}


def test_original_budget_map_keeps_stray_categories() -> None:
    original, ids = original_budget_map([alloc("Pets", "30", 4)])
    assert original["Pets"] == Decimal("30")
    assert ids == {"Pets": 4}


def test_original_budget_map_rejects_duplicates() -> None:
    with pytest.raises(DuplicateAllocationError):
        original_budget_map([alloc("Food", "10", 1), alloc("Food", "10", 2)])


def test_full_ties_keep_input_order() -> None:
    taxonomy = Taxonomy(
        [
            CategoryInfo("dining", "Eating out", "", ""),
            CategoryInfo("restaurants", "Eating out", "", ""),
        ]
    )
    overview = aggregate(
        [], [txn(1, "restaurants", "5"), txn(2, "dining", "5")], taxonomy
    )
    assert [c.category_key for c in overview.categories] == ["restaurants", "dining"]

    overview = aggregate(
        [], [txn(1, "dining", "5"), txn(2, "restaurants", "5")], taxonomy
    )
    assert [c.category_key for c in overview.categories] == ["dining", "restaurants"]
