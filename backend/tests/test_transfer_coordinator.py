"""
Peer-to-peer transfers: validation, conservation of value, atomicity and locking.
"""
import threading
from decimal import Decimal

from account_fixtures import add_account, new_memory_repository

from simbank.errors import (
    AccountNotFound,
    InsufficientFunds,
    InvalidAmount,
    SelfReferenceRejected,
)
from simbank.services.transfer_coordinator import TransferCoordinator


def _expect(exc_type, fn, *args):
    try:
        fn(*args)
    except exc_type:
        return
    raise AssertionError(f"Expected {exc_type.__name__}")


def test_transfer_scenario() -> None:
    repository = new_memory_repository()
    sender = add_account(repository, username="anna", display="100", certified="100", full_name="Anna Neri")
    receiver = add_account(repository, username="luca", display="10", certified="10", full_name="Luca Blu")

    result = TransferCoordinator(repository).transfer(sender.id, receiver.id, 30)

    assert sender.display_balance == Decimal("70.00")
    assert sender.tracked_balance == Decimal("70.00")
    assert sender.certified_balance == Decimal("70.00")
    assert receiver.display_balance == Decimal("40.00")
    assert receiver.tracked_balance == Decimal("40.00")
    assert receiver.certified_balance == Decimal("40.00")

    assert result.from_entry.amount == result.to_entry.amount == Decimal("30.00")
    assert result.from_entry.direction == "expense"
    assert result.to_entry.direction == "income"
    assert result.from_entry.is_certified and result.to_entry.is_certified
    assert not result.from_entry.is_simulated and not result.to_entry.is_simulated
    assert "Luca Blu" in result.from_entry.description
    assert "Anna Neri" in result.to_entry.description
    assert result.from_entry.counterparty_account_number == receiver.account_number
    assert result.to_entry.counterparty_account_number == sender.account_number
    print("✓ transfer scenario")


def test_sender_certified_floors_at_zero() -> None:
    repository = new_memory_repository()
    sender = add_account(repository, display="100", certified="20")
    receiver = add_account(repository, display="0", certified="0")

    TransferCoordinator(repository).transfer(sender.id, receiver.id, 50)
    assert sender.display_balance == Decimal("50.00")
    assert sender.certified_balance == Decimal("0.00")
    assert receiver.certified_balance == Decimal("50.00")
    print("✓ sender certified clamped")


def test_rejections_leave_no_trace() -> None:
    repository = new_memory_repository()
    sender = add_account(repository, display="100", certified="100")
    receiver = add_account(repository, display="10", certified="10")
    coordinator = TransferCoordinator(repository)

    _expect(InsufficientFunds, coordinator.transfer, sender.id, receiver.id, 101)
    _expect(SelfReferenceRejected, coordinator.transfer, sender.id, sender.id, 10)
    _expect(AccountNotFound, coordinator.transfer, sender.id, "ghost", 10)
    _expect(AccountNotFound, coordinator.transfer, "ghost", receiver.id, 10)
    for bad in (0, -5, "2.5", "NaN", "abc"):
        _expect(InvalidAmount, coordinator.transfer, sender.id, receiver.id, bad)

    assert sender.display_balance == Decimal("100.00")
    assert receiver.display_balance == Decimal("10.00")
    assert repository.list_transactions(sender.id) == []
    assert repository.list_transactions(receiver.id) == []
    print("✓ rejections have no partial effect")


def test_failed_ledger_write_rolls_back_both_accounts() -> None:
    repository = new_memory_repository()
    sender = add_account(repository, display="100", certified="100")
    receiver = add_account(repository, display="10", certified="10")

    original_append = repository.append_transaction
    calls = {"count": 0}

    def failing_append(entry):
        calls["count"] += 1
        if calls["count"] == 2:
            raise RuntimeError("ledger unavailable")
        return original_append(entry)

    repository.append_transaction = failing_append
    try:
        TransferCoordinator(repository).transfer(sender.id, receiver.id, 30)
        raise AssertionError("Expected RuntimeError")
    except RuntimeError:
        pass

    assert sender.display_balance == Decimal("100.00")
    assert sender.certified_balance == Decimal("100.00")
    assert receiver.display_balance == Decimal("10.00")
    assert repository.list_transactions(sender.id) == []
    assert repository.list_transactions(receiver.id) == []
    print("✓ failed write rolls back")


def test_concurrent_opposite_transfers_conserve_value() -> None:
    repository = new_memory_repository()
    a = add_account(repository, display="1000", certified="1000")
    b = add_account(repository, display="1000", certified="1000")
    coordinator = TransferCoordinator(repository)
    errors = []

    def worker(from_id, to_id):
        try:
            for _ in range(100):
                coordinator.transfer(from_id, to_id, 1)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [
        threading.Thread(target=worker, args=(a.id, b.id)),
        threading.Thread(target=worker, args=(b.id, a.id)),
        threading.Thread(target=worker, args=(a.id, b.id)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert not errors, errors
    assert all(not thread.is_alive() for thread in threads), "Transfers deadlocked"
    assert a.display_balance + b.display_balance == Decimal("2000.00")
    assert a.display_balance == Decimal("900.00")
    assert b.display_balance == Decimal("1100.00")
    assert len(repository.list_transactions(a.id)) == 300
    print("✓ concurrent transfers conserve value")


if __name__ == "__main__":
    test_transfer_scenario()
    test_sender_certified_floors_at_zero()
    test_rejections_leave_no_trace()
    test_failed_ledger_write_rolls_back_both_accounts()
    test_concurrent_opposite_transfers_conserve_value()
    print("All transfer tests passed.")
