"""
Referral trigger: pays the referrer once when a referred account's lifetime top-ups
cross the referral threshold.

The bonus amount comes from the ``referral_bonus_amount`` app setting, falling back
to the configured default. A referred account activates at most once: the
``referral_activated`` flag and the unique ReferralActivation row guard it.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from simbank.config import get_bank_settings
from simbank.errors import InvalidAmount
from simbank.models import Account, ReferralActivation
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import BalanceTriple, credit_all, format_amount, to_money
from simbank.services.preset_catalog import Direction, PresetCategory
from simbank.services.transaction_factory import TransactionFactory

logger = logging.getLogger(__name__)

REFERRAL_BONUS_SETTING = "referral_bonus_amount"


@dataclass(frozen=True)
class ReferralPayout:
    activation: ReferralActivation
    referrer: Account
    bonus_amount: Decimal


def crossed_threshold(previous_total, new_total, threshold) -> bool:
    return to_money(previous_total) < to_money(threshold) <= to_money(new_total)


class ReferralTrigger:
    def __init__(
        self,
        repository: AccountRepository,
        factory: Optional[TransactionFactory] = None,
        threshold: Optional[Decimal] = None,
        default_bonus: Optional[Decimal] = None,
    ):
        settings = get_bank_settings()
        self.repository = repository
        self.factory = factory or TransactionFactory()
        self.threshold = to_money(threshold if threshold is not None else settings.referral_threshold)
        self.default_bonus = to_money(
            default_bonus if default_bonus is not None else settings.default_referral_bonus
        )

    def bonus_amount(self) -> Decimal:
        raw = self.repository.get_app_setting(REFERRAL_BONUS_SETTING)
        if raw is None:
            return self.default_bonus
        try:
            value = to_money(raw)
        except InvalidAmount:
            logger.warning(f"[REFERRAL] Ignoring invalid {REFERRAL_BONUS_SETTING}={raw!r}")
            return self.default_bonus
        if value < 0:
            logger.warning(f"[REFERRAL] Ignoring negative {REFERRAL_BONUS_SETTING}={raw!r}")
            return self.default_bonus
        return value

    def set_bonus_amount(self, amount) -> Decimal:
        value = to_money(amount)
        if value < 0:
            raise InvalidAmount("Referral bonus cannot be negative")
        self.repository.set_app_setting(REFERRAL_BONUS_SETTING, format_amount(value))
        logger.info(f"[REFERRAL] Bonus amount set to {value}")
        return value

    def apply(
        self,
        referred: Account,
        referrer: Optional[Account],
        previous_total,
        new_total,
    ) -> Optional[ReferralPayout]:
        """
        Pay the referral bonus if this recharge crossed the threshold.

        Both accounts must already be locked by the caller's unit of work.
        """
        if not crossed_threshold(previous_total, new_total, self.threshold):
            return None
        if not referred.referred_by or referred.referral_activated:
            return None
        if self.repository.has_referral_activation(referred.id):
            logger.warning(f"[REFERRAL] Account {referred.id} already has an activation row")
            return None
        if referrer is None:
            logger.warning(
                f"[REFERRAL] Referrer {referred.referred_by} of account {referred.id} not found"
            )
            return None
        if referrer.id == referred.id:
            logger.warning(f"[REFERRAL] Account {referred.id} refers itself, skipping")
            return None

        bonus = self.bonus_amount()
        referrer = self.repository.save_account_balances(
            referrer.id, credit_all(BalanceTriple.of(referrer), bonus)
        )
        generated = self.factory.real_movement(
            account_id=referrer.id,
            description=f"Bonus invito {referred.username}",
            category=PresetCategory.REFERRAL_BONUS,
            amount=bonus,
            direction=Direction.INCOME,
        )
        self.repository.append_transaction(generated.entry)
        activation = self.repository.create_referral_activation(referrer.id, referred.id, bonus)
        self.repository.mark_referral_activated(referred.id)
        logger.info(f"[REFERRAL] Paid {bonus} to {referrer.id} for referring {referred.id}")
        return ReferralPayout(activation=activation, referrer=referrer, bonus_amount=bonus)

    def trigger(self, referred_id: str, previous_total, new_total) -> Optional[ReferralPayout]:
        """Standalone entry point that opens its own unit of work."""
        referred = self.repository.require_account(referred_id)
        referrer_id = referred.referred_by
        if not referrer_id or self.repository.get_account(referrer_id) is None:
            return self.apply(referred, None, previous_total, new_total)

        with self.repository.locked(referred_id, referrer_id) as accounts:
            return self.apply(accounts[referred_id], accounts[referrer_id], previous_total, new_total)
