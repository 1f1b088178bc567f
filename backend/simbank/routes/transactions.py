from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from simbank.dependencies import (
    get_repository,
    get_transaction_factory,
    serialize_account,
    serialize_entry,
)
from simbank.schemas import (
    LedgerEntryResponse,
    ManualTransactionRequest,
    ManualTransactionResponse,
    PresetTriggerRequest,
    PresetTriggerResponse,
    QuickRandomRequest,
    QuickRandomResponse,
    TransactionEdit,
)
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import format_amount
from simbank.services.ledger_service import LedgerService
from simbank.services.preset_trigger_generator import PresetTriggerGenerator
from simbank.services.quick_random_generator import QuickRandomGenerator
from simbank.services.transaction_factory import TransactionFactory

router = APIRouter()


@router.get("/{account_id}", response_model=List[LedgerEntryResponse])
def list_transactions(account_id: str, repository: AccountRepository = Depends(get_repository)):
    """Ledger for an account, newest first."""
    entries = LedgerService(repository).list_transactions(account_id)
    return [serialize_entry(entry) for entry in entries]


@router.post("/{account_id}/quick-random", response_model=Optional[QuickRandomResponse])
def quick_random_expense(
    account_id: str,
    request: Optional[QuickRandomRequest] = None,
    repository: AccountRepository = Depends(get_repository),
    factory: TransactionFactory = Depends(get_transaction_factory),
):
    """
    Apply one random simulated expense. Certified balance is never touched.
    Returns null when every expense preset is excluded.
    """
    generator = QuickRandomGenerator(repository, factory=factory, rng=factory.rng)
    exclusions = request.exclusions if request else []
    result = generator.apply_quick_random_expense(account_id, exclusions)
    if result is None:
        return None
    return QuickRandomResponse(
        entry=serialize_entry(result.entry),
        new_display_balance=format_amount(result.new_display_balance),
    )


@router.post("/{account_id}/presets/{preset_key}", response_model=PresetTriggerResponse)
def trigger_preset(
    account_id: str,
    preset_key: str,
    request: Optional[PresetTriggerRequest] = None,
    repository: AccountRepository = Depends(get_repository),
    factory: TransactionFactory = Depends(get_transaction_factory),
):
    """Fire a named preset. Moves all three balances, certified included."""
    generator = PresetTriggerGenerator(repository, factory=factory, rng=factory.rng)
    amount = request.amount if request else None
    result = generator.trigger_preset(account_id, preset_key, amount=amount)
    return PresetTriggerResponse(
        entry=serialize_entry(result.entry),
        account=serialize_account(result.account),
        requested_amount=format_amount(result.requested_amount),
        applied_amount=format_amount(result.applied_amount),
        was_capped=result.was_capped,
    )


@router.post("/{account_id}/manual", response_model=ManualTransactionResponse)
def record_manual_transaction(
    account_id: str,
    request: ManualTransactionRequest,
    repository: AccountRepository = Depends(get_repository),
    factory: TransactionFactory = Depends(get_transaction_factory),
):
    """Record a user-entered transaction. Income is capped to the recovery margin."""
    try:
        result = LedgerService(repository, factory).record_manual_transaction(
            account_id,
            description=request.description,
            amount=request.amount,
            direction=request.direction,
            category=request.category,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return ManualTransactionResponse(
        entry=serialize_entry(result.entry),
        new_balance=format_amount(result.new_balance),
        was_capped=result.was_capped,
    )


@router.patch("/entry/{entry_id}", response_model=LedgerEntryResponse)
def edit_transaction(
    entry_id: str,
    updates: TransactionEdit,
    repository: AccountRepository = Depends(get_repository),
):
    """Edit amount/description of a ledger entry. Balances are not recomputed."""
    entry = LedgerService(repository).edit_transaction(
        entry_id, amount=updates.amount, description=updates.description
    )
    return serialize_entry(entry)
