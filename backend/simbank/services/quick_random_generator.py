"""
Quick-random generation: one simulated expense per call, drawn from the preset catalog.

This path never touches the certified balance. Only display and tracked move, and
they are floored at zero, so repeated calls can push the display balance arbitrarily
far below certified.
"""
import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from simbank.models import Account, LedgerEntry
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import BalanceTriple, apply_expense
from simbank.services.preset_catalog import (
    build_catalog,
    eligible_expense_presets,
    sample_amount,
)
from simbank.services.transaction_factory import TransactionFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuickRandomExpense:
    entry: LedgerEntry
    account: Account
    new_display_balance: Decimal


class QuickRandomGenerator:
    def __init__(
        self,
        repository: AccountRepository,
        factory: Optional[TransactionFactory] = None,
        rng: Optional[random.Random] = None,
    ):
        self.repository = repository
        self.rng = rng or random.Random()
        self.factory = factory or TransactionFactory(rng=self.rng)

    def eligible_presets(self, account_id: str, exclusions: Iterable[str] = ()):
        settings = self.repository.get_preset_settings(account_id)
        disabled = settings.disabled_presets if settings else []
        deleted = settings.deleted_presets if settings else []
        catalog = build_catalog(self.repository.list_custom_presets(account_id), deleted)
        return eligible_expense_presets(catalog, disabled, exclusions)

    def apply_quick_random_expense(
        self, account_id: str, exclusions: Iterable[str] = ()
    ) -> Optional[QuickRandomExpense]:
        """
        Apply one random expense to the account.

        Returns None when every expense preset is excluded.
        """
        self.repository.require_account(account_id)
        presets = self.eligible_presets(account_id, exclusions)
        if not presets:
            logger.info(f"[QUICK] No eligible expense preset for account {account_id}")
            return None

        preset = self.rng.choice(presets)
        amount = sample_amount(preset, self.rng)

        with self.repository.locked(account_id) as accounts:
            account = accounts[account_id]
            generated = self.factory.quick_random_expense(account_id, preset, amount)
            new_balances = apply_expense(BalanceTriple.of(account), amount)
            account = self.repository.save_account_balances(account_id, new_balances)
            entry = self.repository.append_transaction(generated.entry)

        logger.info(
            f"[QUICK] {preset.description} -{amount} on account {account_id}, "
            f"display={account.display_balance}"
        )
        return QuickRandomExpense(
            entry=entry,
            account=account,
            new_display_balance=account.display_balance,
        )
