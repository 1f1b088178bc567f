from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from simbank.services.preset_catalog import Direction, PresetCategory


# Account Schemas
class AccountCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    full_name: str = Field(min_length=1, max_length=255)
    account_number: str = Field(min_length=1, max_length=64)
    display_name: Optional[str] = None
    referral_code: Optional[str] = None  # referrer's username


class AccountResponse(BaseModel):
    id: str
    username: str
    full_name: str
    display_name: Optional[str] = None
    account_number: str
    display_balance: str  # fixed two-decimal strings
    tracked_balance: str
    certified_balance: str
    total_recharged: str
    referred_by: Optional[str] = None
    referral_activated: bool
    created_at: Optional[datetime] = None


# Ledger Schemas
class LedgerEntryResponse(BaseModel):
    id: str
    account_id: str
    description: str
    category: str
    direction: Direction
    amount: str
    is_certified: bool
    is_simulated: bool
    is_posted: bool
    counterparty_account_number: Optional[str] = None
    occurred_at: datetime


class ManualTransactionRequest(BaseModel):
    description: str = Field(min_length=1)
    amount: Decimal
    direction: Direction
    category: PresetCategory


class ManualTransactionResponse(BaseModel):
    entry: LedgerEntryResponse
    new_balance: str
    was_capped: bool


class TransactionEdit(BaseModel):
    """Cosmetic edit; balances are never recomputed."""
    amount: Optional[Decimal] = None
    description: Optional[str] = Field(default=None, min_length=1)


class QuickRandomRequest(BaseModel):
    exclusions: List[str] = Field(default_factory=list)


class QuickRandomResponse(BaseModel):
    entry: LedgerEntryResponse
    new_display_balance: str


class PresetTriggerRequest(BaseModel):
    amount: Optional[Decimal] = None


class PresetTriggerResponse(BaseModel):
    entry: LedgerEntryResponse
    account: AccountResponse
    requested_amount: str
    applied_amount: str
    was_capped: bool


# Transfer / top-up Schemas
class TransferRequest(BaseModel):
    from_account_id: str
    to_account_id: str
    amount: Decimal


class TransferResponse(BaseModel):
    success: bool
    amount: str
    from_account: AccountResponse
    to_account: AccountResponse
    from_entry: LedgerEntryResponse
    to_entry: LedgerEntryResponse


class TopUpRequest(BaseModel):
    amount: Decimal


class TopUpResponse(BaseModel):
    account: AccountResponse
    entry: LedgerEntryResponse
    referral_bonus_awarded: bool
    referrer_name: Optional[str] = None


# Preset Schemas
class PresetResponse(BaseModel):
    key: str
    description: str
    direction: Direction
    category: PresetCategory
    min_amount: int
    max_amount: int
    fixed_amounts: List[int] = Field(default_factory=list)
    is_custom: bool
    is_enabled: bool = True


class PresetSettingsUpdate(BaseModel):
    disabled_presets: Optional[List[str]] = None
    deleted_presets: Optional[List[str]] = None


class PresetSettingsResponse(BaseModel):
    account_id: str
    disabled_presets: List[str]
    deleted_presets: List[str]

    model_config = ConfigDict(from_attributes=True)


class CustomPresetCreate(BaseModel):
    description: str = Field(min_length=1)
    direction: Direction
    category: PresetCategory
    min_amount: int = Field(gt=0)
    max_amount: int = Field(gt=0)
    fixed_amounts: Optional[List[int]] = None


# Referral Schemas
class ReferralActivationResponse(BaseModel):
    id: int
    referrer_id: str
    referred_id: str
    referrer_username: Optional[str] = None
    referred_username: Optional[str] = None
    bonus_amount: str
    activated_at: Optional[datetime] = None


class ReferralBonusSetting(BaseModel):
    amount: Decimal
