"""
SQLAlchemy models for accounts, the append-only ledger and referral bookkeeping.
Monetary columns are Numeric(12, 2) and always hold two-decimal values.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Numeric,
    Text,
    Integer,
    ForeignKey,
    Index,
    UniqueConstraint,
    JSON,
)
from sqlalchemy.orm import relationship

from simbank.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """
    Account with its three parallel balances.

    display_balance is what the user sees, tracked_balance shadows it for margin
    calculations and certified_balance is the ceiling of real money ever certified
    into the account.
    """
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), nullable=False, unique=True)  # also the referral code
    full_name = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=True)
    account_number = Column(String(64), nullable=False)
    display_balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    tracked_balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    certified_balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_recharged = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    referred_by = Column(String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    referral_activated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = relationship("LedgerEntry", back_populates="account")

    @property
    def name_for_display(self) -> str:
        return self.display_name or self.full_name


class LedgerEntry(Base):
    """
    Ledger record. Amount is always positive; the sign comes from direction.
    Only amount and description may be edited, and editing never touches a balance.
    """
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    direction = Column(String(10), nullable=False)  # expense, income
    amount = Column(Numeric(12, 2), nullable=False)
    is_certified = Column(Boolean, nullable=False, default=False)
    is_simulated = Column(Boolean, nullable=False, default=True)
    is_posted = Column(Boolean, nullable=False, default=True)  # cosmetic pending/settled flag
    counterparty_account_number = Column(String(64), nullable=True)
    occurred_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    account = relationship("Account", back_populates="transactions")

    __table_args__ = (
        Index("idx_transactions_account_occurred", "account_id", "occurred_at"),
    )


class ReferralActivation(Base):
    """One row per referred account whose referrer has been paid."""
    __tablename__ = "referral_activations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    referrer_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    referred_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    bonus_amount = Column(Numeric(12, 2), nullable=False)
    activated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("referred_id", name="referral_activations_referred"),
    )


class AppSetting(Base):
    """Global key-value settings editable at run time."""
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=False)


class PresetSettings(Base):
    """Per-account preset visibility: disabled presets stay in the catalog, deleted ones do not."""
    __tablename__ = "account_preset_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True)
    disabled_presets = Column(JSON, nullable=False, default=list)
    deleted_presets = Column(JSON, nullable=False, default=list)


class CustomPreset(Base):
    """User-defined preset, validated through the preset catalog before it is stored."""
    __tablename__ = "custom_presets"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    direction = Column(String(10), nullable=False)
    category = Column(String(100), nullable=False)
    min_amount = Column(Integer, nullable=False)
    max_amount = Column(Integer, nullable=False)
    fixed_amounts = Column(JSON, nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
