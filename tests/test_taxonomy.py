from decimal import Decimal

import pytest

from amounts import parse_amount, quantize_amount, to_decimal
from taxonomy import EXPENSE_TAXONOMY, CategoryInfo, Taxonomy


def test_aliases_resolve_to_canonical_keys() -> None:
    assert EXPENSE_TAXONOMY.canonical_key("rent") == "Housing"
    assert EXPENSE_TAXONOMY.canonical_key("Transport") == "Travel"
    assert EXPENSE_TAXONOMY.canonical_key("food") == "Food"
    assert EXPENSE_TAXONOMY.canonical_key("Food") == "Food"


def test_unknown_labels_are_left_alone() -> None:
    assert EXPENSE_TAXONOMY.canonical_key("Pets") == "Pets"
    assert EXPENSE_TAXONOMY.display_name("Pets") == "Pets"


def test_ordered_puts_taxonomy_first() -> None:
    assert EXPENSE_TAXONOMY.ordered({"Vehicle", "Pets", "EMI", "Bikes"}) == [
        "EMI",
        "Vehicle",
        "Bikes",
        "Pets",
    ]


def test_taxonomy_rejects_duplicate_keys_and_dangling_aliases() -> None:
    with pytest.raises(ValueError):
        Taxonomy([CategoryInfo("a", "A", "", ""), CategoryInfo("a", "B", "", "")])
    with pytest.raises(ValueError):
        Taxonomy([CategoryInfo("a", "A", "", "")], {"x": "missing"})


def test_parse_amount_handles_user_formats() -> None:
    assert parse_amount("1 234,50 €") == Decimal("1234.50")
    assert parse_amount("$12.5") == Decimal("12.5")
    assert parse_amount("1.234.567,89") == Decimal("1234567.89")
    with pytest.raises(ValueError):
        parse_amount("-3")
    with pytest.raises(ValueError):
        parse_amount("abc")
    with pytest.raises(ValueError):
        parse_amount("")


def test_to_decimal_goes_through_str_for_floats() -> None:
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(5) == Decimal("5")
    assert to_decimal("7,25") == Decimal("7.25")
    with pytest.raises(ValueError):
        to_decimal(True)


def test_quantize_amount_rounds_half_up_to_cents() -> None:
    assert quantize_amount(Decimal("10.005")) == Decimal("10.01")
    assert quantize_amount(Decimal("10.004")) == Decimal("10.00")
    assert quantize_amount(Decimal("7")) == Decimal("7.00")
    assert str(quantize_amount(Decimal("0.1"))) == "0.10"
