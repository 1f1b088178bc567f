"""
Account creation and lookup.
New accounts start with zero balances; a referral code (the referrer's username)
links the account to its referrer for the one-time referral bonus.
"""
import logging
from typing import Optional

from simbank.errors import NotFound
from simbank.models import Account
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import ZERO

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, repository: AccountRepository):
        self.repository = repository

    def get_account(self, account_id: str) -> Account:
        return self.repository.require_account(account_id)

    def create_account(
        self,
        username: str,
        full_name: str,
        account_number: str,
        display_name: Optional[str] = None,
        referral_code: Optional[str] = None,
    ) -> Account:
        username = username.strip()
        if self.repository.get_account_by_username(username) is not None:
            raise ValueError(f"Username {username} is already taken")

        referred_by = None
        if referral_code:
            referrer = self.repository.get_account_by_username(referral_code.strip())
            if referrer is None:
                raise NotFound(f"Referral code {referral_code} not found")
            referred_by = referrer.id

        account = Account(
            username=username,
            full_name=full_name,
            display_name=display_name,
            account_number=account_number,
            display_balance=ZERO,
            tracked_balance=ZERO,
            certified_balance=ZERO,
            total_recharged=ZERO,
            referred_by=referred_by,
            referral_activated=False,
        )
        account = self.repository.add_account(account)
        logger.info(f"[ACCOUNT] Created {account.id} ({username}), referred_by={referred_by}")
        return account
