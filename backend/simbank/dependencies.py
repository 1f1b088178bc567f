"""
FastAPI dependencies: repository per request, admin key check and serializers
shared by the routers.
"""
import hmac
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from simbank.config import get_bank_settings
from simbank.database import get_db
from simbank.errors import Unauthorized
from simbank.models import Account, LedgerEntry
from simbank.schemas import AccountResponse, LedgerEntryResponse
from simbank.services.account_repository import AccountRepository, SqlAccountRepository
from simbank.services.balance_calculator import format_amount
from simbank.services.transaction_factory import TransactionFactory

ADMIN_KEY_HEADER = "X-Admin-Key"


def get_repository(db: Session = Depends(get_db)) -> AccountRepository:
    return SqlAccountRepository(db)


def get_transaction_factory() -> TransactionFactory:
    return TransactionFactory(posted_probability=get_bank_settings().posted_probability)


def require_admin(x_admin_key: Optional[str] = Header(default=None, alias=ADMIN_KEY_HEADER)) -> None:
    """
    Admin routes need X-Admin-Key equal to ADMIN_API_KEY.
    An empty ADMIN_API_KEY disables admin routes entirely.
    """
    expected = get_bank_settings().admin_api_key.strip()
    if not expected or not x_admin_key:
        raise Unauthorized("Admin key required")
    if not hmac.compare_digest(expected.encode("utf-8"), x_admin_key.strip().encode("utf-8")):
        raise Unauthorized("Invalid admin key")


def serialize_account(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        username=account.username,
        full_name=account.full_name,
        display_name=account.display_name,
        account_number=account.account_number,
        display_balance=format_amount(account.display_balance or 0),
        tracked_balance=format_amount(account.tracked_balance or 0),
        certified_balance=format_amount(account.certified_balance or 0),
        total_recharged=format_amount(account.total_recharged or 0),
        referred_by=account.referred_by,
        referral_activated=bool(account.referral_activated),
        created_at=account.created_at,
    )


def serialize_entry(entry: LedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(
        id=entry.id,
        account_id=entry.account_id,
        description=entry.description,
        category=entry.category,
        direction=entry.direction,
        amount=format_amount(entry.amount),
        is_certified=bool(entry.is_certified),
        is_simulated=bool(entry.is_simulated),
        is_posted=bool(entry.is_posted),
        counterparty_account_number=entry.counterparty_account_number,
        occurred_at=entry.occurred_at,
    )
