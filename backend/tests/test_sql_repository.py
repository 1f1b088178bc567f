"""
SqlAccountRepository against an in-memory SQLite database: unit-of-work commit and
rollback, and the services running end to end on the SQL store.
"""
from decimal import Decimal

from account_fixtures import add_account, make_sql_repository

from simbank.errors import AccountNotFound, InsufficientFunds
from simbank.services.balance_calculator import BalanceTriple
from simbank.services.ledger_service import LedgerService
from simbank.services.preset_settings_service import PresetSettingsService
from simbank.services.preset_trigger_generator import PresetTriggerGenerator
from simbank.services.recharge_service import RechargeService
from simbank.services.transfer_coordinator import TransferCoordinator


def test_locked_commits_on_success() -> None:
    repository = make_sql_repository()
    account = add_account(repository, display="10", certified="10")

    with repository.locked(account.id):
        repository.save_account_balances(
            account.id, BalanceTriple(Decimal("25"), Decimal("25"), Decimal("10"))
        )

    repository.db.expire_all()
    reloaded = repository.get_account(account.id)
    assert reloaded.display_balance == Decimal("25.00")
    assert reloaded.certified_balance == Decimal("10.00")
    print("✓ unit of work commits")


def test_locked_rolls_back_on_error() -> None:
    repository = make_sql_repository()
    account = add_account(repository, display="10", certified="10")

    try:
        with repository.locked(account.id):
            repository.save_account_balances(
                account.id, BalanceTriple(Decimal("0"), Decimal("0"), Decimal("0"))
            )
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    reloaded = repository.get_account(account.id)
    assert reloaded.display_balance == Decimal("10.00")
    assert reloaded.certified_balance == Decimal("10.00")

    try:
        with repository.locked("ghost"):
            raise AssertionError("Block must not run for a missing account")
    except AccountNotFound:
        pass
    print("✓ unit of work rolls back")


def test_transfer_on_sql() -> None:
    repository = make_sql_repository()
    sender = add_account(repository, username="anna", display="100", certified="100")
    receiver = add_account(repository, username="luca", display="10", certified="10")
    coordinator = TransferCoordinator(repository)

    coordinator.transfer(sender.id, receiver.id, 30)
    try:
        coordinator.transfer(sender.id, receiver.id, 500)
        raise AssertionError("Expected InsufficientFunds")
    except InsufficientFunds:
        pass

    assert repository.get_account(sender.id).display_balance == Decimal("70.00")
    assert repository.get_account(receiver.id).display_balance == Decimal("40.00")
    assert len(repository.list_transactions(sender.id)) == 1
    assert len(repository.list_transactions(receiver.id)) == 1
    print("✓ transfer on SQL store")


def test_referral_on_sql() -> None:
    repository = make_sql_repository()
    referrer = add_account(repository, username="marco", display="500", certified="500")
    referred = add_account(repository, username="giulia", total_recharged="1.50", referred_by=referrer.id)
    service = RechargeService(repository)

    assert service.top_up(referred.id, "1.50").referral_bonus_awarded
    assert not service.top_up(referred.id, "1.50").referral_bonus_awarded

    assert repository.get_account(referrer.id).display_balance == Decimal("700.00")
    assert repository.get_account(referred.id).referral_activated is True
    assert repository.get_account(referred.id).total_recharged == Decimal("4.50")
    activations = repository.list_referral_activations()
    assert len(activations) == 1
    assert activations[0].referred_id == referred.id
    print("✓ referral on SQL store")


def test_presets_and_edits_on_sql() -> None:
    repository = make_sql_repository()
    account = add_account(repository, display="100", certified="100")

    preset = PresetSettingsService(repository).add_custom_preset(
        account.id, description="PALESTRA", direction="expense", category="Salute",
        min_amount=25, max_amount=25,
    )
    result = PresetTriggerGenerator(repository).trigger_preset(account.id, preset.key)
    assert result.applied_amount == Decimal("25")

    ledger = LedgerService(repository)
    edited = ledger.edit_transaction(result.entry.id, amount="1.00", description="PALESTRA MENSILE")
    assert edited.amount == Decimal("1.00")
    assert edited.description == "PALESTRA MENSILE"

    reloaded = repository.get_account(account.id)
    assert reloaded.display_balance == Decimal("75.00")
    assert reloaded.certified_balance == Decimal("75.00")
    print("✓ presets and edits on SQL store")


if __name__ == "__main__":
    test_locked_commits_on_success()
    test_locked_rolls_back_on_error()
    test_transfer_on_sql()
    test_referral_on_sql()
    test_presets_and_edits_on_sql()
    print("All SQL repository tests passed.")
