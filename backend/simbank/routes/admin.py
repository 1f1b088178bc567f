from typing import List

from fastapi import APIRouter, Depends

from simbank.dependencies import get_repository, require_admin
from simbank.schemas import ReferralActivationResponse, ReferralBonusSetting
from simbank.services.account_repository import AccountRepository
from simbank.services.balance_calculator import format_amount
from simbank.services.referral_trigger import ReferralTrigger

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/referrals", response_model=List[ReferralActivationResponse])
def list_referral_activations(repository: AccountRepository = Depends(get_repository)):
    """All referral activations, newest first, with both usernames resolved."""
    results = []
    for activation in repository.list_referral_activations():
        referrer = repository.get_account(activation.referrer_id)
        referred = repository.get_account(activation.referred_id)
        results.append(
            ReferralActivationResponse(
                id=activation.id,
                referrer_id=activation.referrer_id,
                referred_id=activation.referred_id,
                referrer_username=referrer.username if referrer else None,
                referred_username=referred.username if referred else None,
                bonus_amount=format_amount(activation.bonus_amount),
                activated_at=activation.activated_at,
            )
        )
    return results


@router.get("/settings/referral-bonus")
def get_referral_bonus(repository: AccountRepository = Depends(get_repository)):
    return {"amount": format_amount(ReferralTrigger(repository).bonus_amount())}


@router.put("/settings/referral-bonus")
def set_referral_bonus(setting: ReferralBonusSetting, repository: AccountRepository = Depends(get_repository)):
    value = ReferralTrigger(repository).set_bonus_amount(setting.amount)
    return {"amount": format_amount(value)}
