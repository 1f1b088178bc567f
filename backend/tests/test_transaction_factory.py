"""
Unit tests for ledger entry construction.
"""
import random
from decimal import Decimal

import account_fixtures  # noqa: F401

from simbank.services.preset_catalog import DEFAULT_PRESETS, Direction, PresetCategory, find_preset
from simbank.services.transaction_factory import TransactionFactory


def test_expense_delta_is_negative_and_amount_positive() -> None:
    factory = TransactionFactory(rng=random.Random(1))
    generated = factory.manual("acc-1", "Cena", PresetCategory.DINING, Decimal("-25"), Direction.EXPENSE)
    assert generated.entry.amount == Decimal("25.00")
    assert generated.delta == Decimal("-25.00")
    assert generated.entry.direction == "expense"
    assert generated.entry.category == "Ristorazione"
    assert generated.entry.is_certified is False
    assert generated.entry.is_simulated is True
    assert generated.entry.id
    print("✓ expense entry")


def test_income_delta_is_positive() -> None:
    factory = TransactionFactory()
    generated = factory.manual("acc-1", "Rimborso", "Rimborsi", 12, "income")
    assert generated.delta == Decimal("12.00")
    assert generated.entry.direction == "income"
    print("✓ income entry")


def test_certified_and_real_flags() -> None:
    factory = TransactionFactory()
    preset = find_preset(DEFAULT_PRESETS, "enel-energia")
    certified = factory.certified_preset("acc-1", preset, 60)
    assert certified.entry.is_certified is True
    assert certified.entry.is_simulated is True
    assert certified.entry.is_posted is True

    real = factory.real_movement(
        "acc-1", "Bonifico a Luca", PresetCategory.TRANSFERS, 30, Direction.EXPENSE,
        counterparty_account_number="IT00",
    )
    assert real.entry.is_certified is True
    assert real.entry.is_simulated is False
    assert real.entry.counterparty_account_number == "IT00"
    print("✓ certified/real flags")


def test_quick_random_posted_ratio() -> None:
    factory = TransactionFactory(rng=random.Random(42))
    preset = find_preset(DEFAULT_PRESETS, "conad")
    entries = [factory.quick_random_expense("acc-1", preset, 10).entry for _ in range(2000)]
    posted = sum(1 for entry in entries if entry.is_posted)
    ratio = posted / len(entries)
    assert 0.80 < ratio < 0.90, ratio
    assert all(entry.is_certified is False for entry in entries)
    print("✓ posted ratio")


if __name__ == "__main__":
    test_expense_delta_is_negative_and_amount_positive()
    test_income_delta_is_positive()
    test_certified_and_real_flags()
    test_quick_random_posted_ratio()
    print("All transaction factory tests passed.")
