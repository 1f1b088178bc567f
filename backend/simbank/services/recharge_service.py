"""
Administrative top-ups.

A top-up is real money: all three balances and the lifetime total_recharged grow by
the amount, a certified income entry is written, and the referral trigger runs in
the same unit of work.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from simbank.models import Account, LedgerEntry
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import (
    BalanceTriple,
    credit_all,
    parse_money_amount,
    to_money,
)
from simbank.services.preset_catalog import Direction, PresetCategory
from simbank.services.referral_trigger import ReferralPayout, ReferralTrigger
from simbank.services.transaction_factory import TransactionFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopUpResult:
    account: Account
    entry: LedgerEntry
    referral: Optional[ReferralPayout] = None

    @property
    def referral_bonus_awarded(self) -> bool:
        return self.referral is not None

    @property
    def referrer_name(self) -> Optional[str]:
        return self.referral.referrer.name_for_display if self.referral else None


class RechargeService:
    def __init__(
        self,
        repository: AccountRepository,
        factory: Optional[TransactionFactory] = None,
        referral_trigger: Optional[ReferralTrigger] = None,
    ):
        self.repository = repository
        self.factory = factory or TransactionFactory()
        self.referral_trigger = referral_trigger or ReferralTrigger(repository, factory=self.factory)

    def top_up(self, account_id: str, amount) -> TopUpResult:
        value = parse_money_amount(amount)
        account = self.repository.require_account(account_id)

        lock_ids = [account_id]
        if account.referred_by and self.repository.get_account(account.referred_by) is not None:
            lock_ids.append(account.referred_by)

        with self.repository.locked(*lock_ids) as accounts:
            account = accounts[account_id]
            referrer = accounts.get(account.referred_by) if account.referred_by else None

            previous_total = to_money(account.total_recharged or 0)
            new_total = previous_total + value
            account = self.repository.save_account_balances(
                account_id, credit_all(BalanceTriple.of(account), value)
            )
            account = self.repository.set_total_recharged(account_id, new_total)
            generated = self.factory.real_movement(
                account_id=account_id,
                description="Ricarica conto",
                category=PresetCategory.TOP_UP,
                amount=value,
                direction=Direction.INCOME,
            )
            entry = self.repository.append_transaction(generated.entry)
            payout = self.referral_trigger.apply(account, referrer, previous_total, new_total)

        logger.info(
            f"[TOPUP] {value} on account {account_id}, total_recharged={account.total_recharged}, "
            f"referral={'yes' if payout else 'no'}"
        )
        return TopUpResult(account=account, entry=entry, referral=payout)
