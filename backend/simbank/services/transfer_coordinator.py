"""
Peer-to-peer transfers between two accounts.

A transfer is real money movement: the sender's three balances go down, the
receiver's three balances go up, and one ledger entry is written on each side.
Both accounts are locked in id order and everything commits in one unit of work,
so a failure anywhere leaves both accounts and the ledger untouched.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from simbank.errors import InsufficientFunds, SelfReferenceRejected
from simbank.models import Account, LedgerEntry
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import (
    BalanceTriple,
    credit_all,
    debit_all,
    parse_whole_amount,
)
from simbank.services.preset_catalog import Direction, PresetCategory
from simbank.services.transaction_factory import TransactionFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    amount: Decimal
    from_account: Account
    to_account: Account
    from_entry: LedgerEntry
    to_entry: LedgerEntry


class TransferCoordinator:
    def __init__(self, repository: AccountRepository, factory: Optional[TransactionFactory] = None):
        self.repository = repository
        self.factory = factory or TransactionFactory()

    def transfer(self, from_id: str, to_id: str, amount) -> TransferResult:
        value = parse_whole_amount(amount)
        if from_id == to_id:
            raise SelfReferenceRejected("Cannot transfer money to the same account")

        # Balances are read under lock, never taken from the caller.
        with self.repository.locked(from_id, to_id) as accounts:
            sender = accounts[from_id]
            receiver = accounts[to_id]
            sender_balances = BalanceTriple.of(sender)
            if value > sender_balances.display:
                raise InsufficientFunds(
                    f"Insufficient balance: {sender_balances.display} available, {value} requested"
                )

            outgoing = self.factory.real_movement(
                account_id=from_id,
                description=f"Bonifico a {receiver.name_for_display}",
                category=PresetCategory.TRANSFERS,
                amount=value,
                direction=Direction.EXPENSE,
                counterparty_account_number=receiver.account_number,
            )
            incoming = self.factory.real_movement(
                account_id=to_id,
                description=f"Bonifico da {sender.name_for_display}",
                category=PresetCategory.TRANSFERS,
                amount=value,
                direction=Direction.INCOME,
                counterparty_account_number=sender.account_number,
            )

            sender = self.repository.save_account_balances(from_id, debit_all(sender_balances, value))
            receiver = self.repository.save_account_balances(
                to_id, credit_all(BalanceTriple.of(receiver), value)
            )
            from_entry = self.repository.append_transaction(outgoing.entry)
            to_entry = self.repository.append_transaction(incoming.entry)

        logger.info(
            f"[TRANSFER] {value} from {from_id} to {to_id}: "
            f"sender display={sender.display_balance}, receiver display={receiver.display_balance}"
        )
        return TransferResult(
            amount=value,
            from_account=sender,
            to_account=receiver,
            from_entry=from_entry,
            to_entry=to_entry,
        )
