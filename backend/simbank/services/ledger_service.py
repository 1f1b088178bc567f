"""
Manual ledger operations: record a user-entered transaction, list and edit history.

Manual transactions are simulated. Expenses lower display and tracked; income is
capped to the recovery margin max(0, certified - display) so a client can never
push its display balance above what was certified.
Editing an entry is cosmetic: it rewrites amount/description and leaves every
balance alone.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from simbank.errors import NotFound
from simbank.models import Account, LedgerEntry
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import (
    BalanceTriple,
    apply_expense,
    apply_income,
    cap_income,
    parse_simulated_amount,
    parse_money_amount,
    recovery_margin,
)
from simbank.services.preset_catalog import Direction, PresetCategory
from simbank.services.transaction_factory import TransactionFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManualTransactionResult:
    entry: LedgerEntry
    account: Account
    new_balance: Decimal
    was_capped: bool


class LedgerService:
    def __init__(self, repository: AccountRepository, factory: Optional[TransactionFactory] = None):
        self.repository = repository
        self.factory = factory or TransactionFactory()

    def list_transactions(self, account_id: str) -> List[LedgerEntry]:
        self.repository.require_account(account_id)
        return self.repository.list_transactions(account_id)

    def record_manual_transaction(
        self,
        account_id: str,
        description: str,
        amount,
        direction,
        category,
    ) -> ManualTransactionResult:
        direction = Direction(direction)
        category = PresetCategory(category)
        if not description or not description.strip():
            raise ValueError("Description is required")
        requested = parse_simulated_amount(amount)

        with self.repository.locked(account_id) as accounts:
            account = accounts[account_id]
            balances = BalanceTriple.of(account)
            if direction is Direction.EXPENSE:
                applied = requested
                new_balances = apply_expense(balances, applied)
            else:
                applied = cap_income(requested, recovery_margin(balances)).applied
                new_balances = apply_income(balances, applied)

            generated = self.factory.manual(account_id, description, category, applied, direction)
            account = self.repository.save_account_balances(account_id, new_balances)
            entry = self.repository.append_transaction(generated.entry)

        was_capped = applied < requested
        if was_capped:
            logger.info(f"[MANUAL] Income capped from {requested} to {applied} on account {account_id}")
        logger.info(
            f"[MANUAL] {direction.value} {applied} on account {account_id}, display={account.display_balance}"
        )
        return ManualTransactionResult(
            entry=entry,
            account=account,
            new_balance=account.display_balance,
            was_capped=was_capped,
        )

    def edit_transaction(
        self,
        entry_id: str,
        amount=None,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        new_amount = None
        if amount is not None:
            new_amount = parse_money_amount(amount)
        entry = self.repository.update_transaction(entry_id, amount=new_amount, description=description)
        if entry is None:
            raise NotFound(f"Transaction {entry_id} not found")
        logger.info(f"[LEDGER] Edited transaction {entry_id} (balances untouched)")
        return entry
