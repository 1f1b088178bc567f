"""
Preset-trigger generation: fire one named preset, expense or income.

Unlike quick-random generation, this path moves the certified balance too:
- expense: spends certified money, so all three balances go down; rejected when the
  amount is not covered by the certified balance
- income: replays lifetime top-ups not yet certified, capped to
  max(0, total_recharged - certified); all three balances go up
"""
import logging
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from simbank.errors import PresetNotFound
from simbank.models import Account, LedgerEntry
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import (
    BalanceTriple,
    apply_certified_expense,
    cap_income,
    credit_all,
    parse_simulated_amount,
    preset_recovery_margin,
)
from simbank.services.preset_catalog import Preset, build_catalog, find_preset, sample_amount
from simbank.services.transaction_factory import TransactionFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CertifiedPresetResult:
    entry: LedgerEntry
    account: Account
    preset: Preset
    requested_amount: Decimal
    applied_amount: Decimal

    @property
    def was_capped(self) -> bool:
        return self.applied_amount < self.requested_amount


class PresetTriggerGenerator:
    def __init__(
        self,
        repository: AccountRepository,
        factory: Optional[TransactionFactory] = None,
        rng: Optional[random.Random] = None,
    ):
        self.repository = repository
        self.rng = rng or random.Random()
        self.factory = factory or TransactionFactory(rng=self.rng)

    def resolve_preset(self, account_id: str, preset_key: str) -> Preset:
        settings = self.repository.get_preset_settings(account_id)
        deleted = settings.deleted_presets if settings else []
        catalog = build_catalog(self.repository.list_custom_presets(account_id), deleted)
        preset = find_preset(catalog, preset_key)
        if preset is None:
            raise PresetNotFound(preset_key)
        return preset

    def trigger_preset(
        self, account_id: str, preset_key: str, amount=None
    ) -> CertifiedPresetResult:
        """
        Execute a preset against the account.

        ``amount`` overrides the sampled amount; it is floored to whole units.
        """
        self.repository.require_account(account_id)
        preset = self.resolve_preset(account_id, preset_key)
        requested = (
            parse_simulated_amount(amount) if amount is not None else sample_amount(preset, self.rng)
        )

        with self.repository.locked(account_id) as accounts:
            account = accounts[account_id]
            balances = BalanceTriple.of(account)
            if preset.is_expense:
                applied = requested
                new_balances = apply_certified_expense(balances, applied)
            else:
                margin = preset_recovery_margin(account.total_recharged or 0, balances.certified)
                applied = cap_income(requested, margin).applied
                new_balances = credit_all(balances, applied)

            generated = self.factory.certified_preset(account_id, preset, applied)
            account = self.repository.save_account_balances(account_id, new_balances)
            entry = self.repository.append_transaction(generated.entry)

        logger.info(
            f"[PRESET] {preset.direction.value} {preset.description} {applied} "
            f"(requested {requested}) on account {account_id}, display={account.display_balance}"
        )
        return CertifiedPresetResult(
            entry=entry,
            account=account,
            preset=preset,
            requested_amount=requested,
            applied_amount=applied,
        )
