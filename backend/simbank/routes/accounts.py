from fastapi import APIRouter, Depends, HTTPException

from simbank.dependencies import (
    get_repository,
    get_transaction_factory,
    require_admin,
    serialize_account,
    serialize_entry,
)
from simbank.schemas import (
    AccountCreate,
    AccountResponse,
    TopUpRequest,
    TopUpResponse,
    TransferRequest,
    TransferResponse,
)
from simbank.services.account_repository import AccountRepository
from simbank.services.account_service import AccountService
from simbank.services.balance_calculator import format_amount
from simbank.services.recharge_service import RechargeService
from simbank.services.transaction_factory import TransactionFactory
from simbank.services.transfer_coordinator import TransferCoordinator

router = APIRouter()


@router.post("/transfer", response_model=TransferResponse)
def transfer(
    request: TransferRequest,
    repository: AccountRepository = Depends(get_repository),
    factory: TransactionFactory = Depends(get_transaction_factory),
):
    """
    Move money between two accounts.

    The sender balance is read fresh under lock; both sides and both ledger entries
    commit together or not at all.
    """
    result = TransferCoordinator(repository, factory).transfer(
        request.from_account_id, request.to_account_id, request.amount
    )
    return TransferResponse(
        success=True,
        amount=format_amount(result.amount),
        from_account=serialize_account(result.from_account),
        to_account=serialize_account(result.to_account),
        from_entry=serialize_entry(result.from_entry),
        to_entry=serialize_entry(result.to_entry),
    )


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(account_id: str, repository: AccountRepository = Depends(get_repository)):
    """Get a specific account by ID."""
    return serialize_account(AccountService(repository).get_account(account_id))


@router.post("/", response_model=AccountResponse, status_code=201, dependencies=[Depends(require_admin)])
def create_account(account: AccountCreate, repository: AccountRepository = Depends(get_repository)):
    """Create a new account, optionally linked to a referrer by referral code."""
    try:
        created = AccountService(repository).create_account(
            username=account.username,
            full_name=account.full_name,
            account_number=account.account_number,
            display_name=account.display_name,
            referral_code=account.referral_code,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return serialize_account(created)


@router.post("/{account_id}/top-up", response_model=TopUpResponse, dependencies=[Depends(require_admin)])
def top_up(
    account_id: str,
    request: TopUpRequest,
    repository: AccountRepository = Depends(get_repository),
    factory: TransactionFactory = Depends(get_transaction_factory),
):
    """Administrative recharge. May pay the one-time referral bonus to the referrer."""
    result = RechargeService(repository, factory).top_up(account_id, request.amount)
    return TopUpResponse(
        account=serialize_account(result.account),
        entry=serialize_entry(result.entry),
        referral_bonus_awarded=result.referral_bonus_awarded,
        referrer_name=result.referrer_name,
    )
