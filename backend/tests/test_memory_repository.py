"""
InMemoryAccountRepository unit of work: a rollback discards only what the failing
block wrote, even while other threads keep writing to other accounts.
"""
import threading
from decimal import Decimal

from account_fixtures import add_account, new_memory_repository

from simbank.services.balance_calculator import BalanceTriple
from simbank.services.ledger_service import LedgerService
from simbank.services.recharge_service import RechargeService
from simbank.services.transaction_factory import TransactionFactory


def test_rollback_keeps_other_threads_entries() -> None:
    repository = new_memory_repository()
    x = add_account(repository, display="100", certified="100")
    y = add_account(repository, display="100", certified="100")
    factory = TransactionFactory()
    errors = []

    def record_on_y():
        try:
            LedgerService(repository, factory).record_manual_transaction(
                y.id, "Caffe", 10, "expense", "Ristorazione"
            )
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    try:
        with repository.locked(x.id):
            repository.save_account_balances(
                x.id, BalanceTriple(Decimal("1"), Decimal("1"), Decimal("1"))
            )
            repository.append_transaction(
                factory.manual(x.id, "Spesa", "Supermercato", 99, "expense").entry
            )
            worker = threading.Thread(target=record_on_y)
            worker.start()
            worker.join(timeout=10)
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert not errors, errors
    assert x.display_balance == Decimal("100.00")
    assert repository.list_transactions(x.id) == []
    assert y.display_balance == Decimal("90.00")
    entries = repository.list_transactions(y.id)
    assert len(entries) == 1
    assert entries[0].description == "Caffe"
    print("✓ rollback keeps other threads' entries")


def test_rollback_keeps_other_threads_activations() -> None:
    repository = new_memory_repository()
    x = add_account(repository, display="100", certified="100")
    referrer = add_account(repository, username="marco")
    referred = add_account(repository, username="giulia", referred_by=referrer.id)
    errors = []

    def top_up_referred():
        try:
            RechargeService(repository).top_up(referred.id, "5")
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    try:
        with repository.locked(x.id):
            repository.create_referral_activation(x.id, "someone-else", Decimal("1"))
            worker = threading.Thread(target=top_up_referred)
            worker.start()
            worker.join(timeout=10)
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert not errors, errors
    activations = repository.list_referral_activations()
    assert [activation.referred_id for activation in activations] == [referred.id]
    assert referred.referral_activated is True
    assert referrer.display_balance == Decimal("200.00")
    print("✓ rollback keeps other threads' activations")


if __name__ == "__main__":
    test_rollback_keeps_other_threads_entries()
    test_rollback_keeps_other_threads_activations()
    print("All in-memory repository tests passed.")
