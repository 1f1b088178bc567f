"""
Account repository: the single write surface for account balances and the ledger.

Every balance mutation goes through ``locked(*account_ids)``, a unit of work that
acquires the accounts in sorted id order, commits when the block finishes and rolls
back everything (balances and ledger appends) when it raises.

Two implementations:
1. SqlAccountRepository - SQLAlchemy session with SELECT ... FOR UPDATE row locks
2. InMemoryAccountRepository - process-local store with one re-entrant lock per account
"""
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from simbank.errors import AccountNotFound
from simbank.models import (
    Account,
    AppSetting,
    CustomPreset,
    LedgerEntry,
    PresetSettings,
    ReferralActivation,
)
from simbank.services.balance_calculator import BalanceTriple, to_money

logger = logging.getLogger(__name__)


class AccountRepository(ABC):
    @abstractmethod
    def locked(self, *account_ids: str):
        """Unit of work over the given accounts; yields {account_id: Account}."""
        pass

    @abstractmethod
    def add_account(self, account: Account) -> Account:
        pass

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        pass

    @abstractmethod
    def get_account_by_username(self, username: str) -> Optional[Account]:
        pass

    @abstractmethod
    def save_account_balances(self, account_id: str, balances: BalanceTriple) -> Account:
        """Persist a clamped balance triple. Call inside locked()."""
        pass

    @abstractmethod
    def set_total_recharged(self, account_id: str, total: Decimal) -> Account:
        pass

    @abstractmethod
    def mark_referral_activated(self, account_id: str) -> Account:
        pass

    @abstractmethod
    def append_transaction(self, entry: LedgerEntry) -> LedgerEntry:
        pass

    @abstractmethod
    def list_transactions(self, account_id: str) -> List[LedgerEntry]:
        """Ledger for one account, newest first."""
        pass

    @abstractmethod
    def get_transaction(self, entry_id: str) -> Optional[LedgerEntry]:
        pass

    @abstractmethod
    def update_transaction(
        self,
        entry_id: str,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Optional[LedgerEntry]:
        """Cosmetic edit of a ledger entry. Never touches an account."""
        pass

    @abstractmethod
    def has_referral_activation(self, referred_id: str) -> bool:
        pass

    @abstractmethod
    def create_referral_activation(
        self, referrer_id: str, referred_id: str, bonus_amount: Decimal
    ) -> ReferralActivation:
        pass

    @abstractmethod
    def list_referral_activations(self) -> List[ReferralActivation]:
        pass

    @abstractmethod
    def get_app_setting(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_app_setting(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def get_preset_settings(self, account_id: str) -> Optional[PresetSettings]:
        pass

    @abstractmethod
    def save_preset_settings(
        self,
        account_id: str,
        disabled_presets: Optional[List[str]] = None,
        deleted_presets: Optional[List[str]] = None,
    ) -> PresetSettings:
        pass

    @abstractmethod
    def list_custom_presets(self, account_id: str) -> List[CustomPreset]:
        pass

    @abstractmethod
    def add_custom_preset(self, preset: CustomPreset) -> CustomPreset:
        pass

    def require_account(self, account_id: str) -> Account:
        account = self.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account


def _apply_balances(account: Account, balances: BalanceTriple) -> None:
    clamped = balances.clamped()
    account.display_balance = clamped.display
    account.tracked_balance = clamped.tracked
    account.certified_balance = clamped.certified
    account.updated_at = datetime.utcnow()


class SqlAccountRepository(AccountRepository):
    """Repository backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def locked(self, *account_ids: str) -> Iterator[Dict[str, Account]]:
        try:
            accounts: Dict[str, Account] = {}
            for account_id in sorted(set(account_ids)):
                account = (
                    self.db.query(Account)
                    .filter(Account.id == account_id)
                    .with_for_update()
                    .populate_existing()
                    .first()
                )
                if account is None:
                    raise AccountNotFound(account_id)
                accounts[account_id] = account
            yield accounts
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def add_account(self, account: Account) -> Account:
        self.db.add(account)
        self.db.commit()
        self.db.refresh(account)
        logger.info(f"[REPO] Created account {account.id} ({account.username})")
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def get_account_by_username(self, username: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.username == username).first()

    def save_account_balances(self, account_id: str, balances: BalanceTriple) -> Account:
        account = self.require_account(account_id)
        _apply_balances(account, balances)
        self.db.flush()
        return account

    def set_total_recharged(self, account_id: str, total: Decimal) -> Account:
        account = self.require_account(account_id)
        account.total_recharged = to_money(total)
        self.db.flush()
        return account

    def mark_referral_activated(self, account_id: str) -> Account:
        account = self.require_account(account_id)
        account.referral_activated = True
        self.db.flush()
        return account

    def append_transaction(self, entry: LedgerEntry) -> LedgerEntry:
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_transactions(self, account_id: str) -> List[LedgerEntry]:
        return (
            self.db.query(LedgerEntry)
            .filter(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.created_at.desc())
            .all()
        )

    def get_transaction(self, entry_id: str) -> Optional[LedgerEntry]:
        return self.db.query(LedgerEntry).filter(LedgerEntry.id == entry_id).first()

    def update_transaction(
        self,
        entry_id: str,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Optional[LedgerEntry]:
        entry = self.get_transaction(entry_id)
        if entry is None:
            return None
        if amount is not None:
            entry.amount = to_money(amount)
        if description is not None:
            entry.description = description
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def has_referral_activation(self, referred_id: str) -> bool:
        return (
            self.db.query(ReferralActivation.id)
            .filter(ReferralActivation.referred_id == referred_id)
            .first()
            is not None
        )

    def create_referral_activation(
        self, referrer_id: str, referred_id: str, bonus_amount: Decimal
    ) -> ReferralActivation:
        activation = ReferralActivation(
            referrer_id=referrer_id,
            referred_id=referred_id,
            bonus_amount=to_money(bonus_amount),
            activated_at=datetime.utcnow(),
        )
        self.db.add(activation)
        self.db.flush()
        return activation

    def list_referral_activations(self) -> List[ReferralActivation]:
        return (
            self.db.query(ReferralActivation)
            .order_by(ReferralActivation.activated_at.desc())
            .all()
        )

    def get_app_setting(self, key: str) -> Optional[str]:
        row = self.db.query(AppSetting).filter(AppSetting.key == key).first()
        return row.value if row else None

    def set_app_setting(self, key: str, value: str) -> None:
        row = self.db.query(AppSetting).filter(AppSetting.key == key).first()
        if row:
            row.value = value
        else:
            self.db.add(AppSetting(key=key, value=value))
        self.db.commit()

    def get_preset_settings(self, account_id: str) -> Optional[PresetSettings]:
        return self.db.query(PresetSettings).filter(PresetSettings.account_id == account_id).first()

    def save_preset_settings(
        self,
        account_id: str,
        disabled_presets: Optional[List[str]] = None,
        deleted_presets: Optional[List[str]] = None,
    ) -> PresetSettings:
        settings = self.get_preset_settings(account_id)
        if settings is None:
            settings = PresetSettings(account_id=account_id, disabled_presets=[], deleted_presets=[])
            self.db.add(settings)
        if disabled_presets is not None:
            settings.disabled_presets = list(disabled_presets)
        if deleted_presets is not None:
            settings.deleted_presets = list(deleted_presets)
        self.db.commit()
        self.db.refresh(settings)
        return settings

    def list_custom_presets(self, account_id: str) -> List[CustomPreset]:
        return (
            self.db.query(CustomPreset)
            .filter(CustomPreset.account_id == account_id)
            .order_by(CustomPreset.created_at)
            .all()
        )

    def add_custom_preset(self, preset: CustomPreset) -> CustomPreset:
        self.db.add(preset)
        self.db.commit()
        self.db.refresh(preset)
        return preset


_ACCOUNT_STATE_FIELDS = (
    "display_balance",
    "tracked_balance",
    "certified_balance",
    "total_recharged",
    "referral_activated",
    "updated_at",
)


class InMemoryAccountRepository(AccountRepository):
    """
    Process-local repository holding transient model instances.

    Each account has its own re-entrant lock so nested units of work on the same
    thread do not deadlock; the outermost block owns commit/rollback. Ledger rows and
    activations are tracked per thread, so a rollback only discards what its own
    unit of work wrote.
    """

    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._ledger: List[LedgerEntry] = []
        self._activations: List[ReferralActivation] = []
        self._settings: Dict[str, str] = {}
        self._preset_settings: Dict[str, PresetSettings] = {}
        self._custom_presets: List[CustomPreset] = []
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()
        # Guards the shared ledger and activation lists.
        self._store_lock = threading.Lock()
        self._next_activation_id = 1
        self._local = threading.local()

    def _lock_for(self, account_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def locked(self, *account_ids: str) -> Iterator[Dict[str, Account]]:
        ordered = sorted(set(account_ids))
        for account_id in ordered:
            if account_id not in self._accounts:
                raise AccountNotFound(account_id)

        acquired = []
        try:
            for account_id in ordered:
                lock = self._lock_for(account_id)
                lock.acquire()
                acquired.append(lock)

            depth = getattr(self._local, "depth", 0)
            self._local.depth = depth + 1
            snapshot = self._snapshot(ordered) if depth == 0 else None
            if depth == 0:
                self._local.appended = []
                self._local.activated = []
            try:
                yield {account_id: self._accounts[account_id] for account_id in ordered}
            except Exception:
                if snapshot is not None:
                    self._restore(snapshot)
                raise
            finally:
                self._local.depth = depth
                if depth == 0:
                    self._local.appended = []
                    self._local.activated = []
        finally:
            for lock in reversed(acquired):
                lock.release()

    def _snapshot(self, account_ids: List[str]) -> dict:
        return {
            "accounts": {
                account_id: {
                    name: getattr(self._accounts[account_id], name)
                    for name in _ACCOUNT_STATE_FIELDS
                }
                for account_id in account_ids
            },
        }

    def _restore(self, snapshot: dict) -> None:
        for account_id, state in snapshot["accounts"].items():
            account = self._accounts[account_id]
            for name, value in state.items():
                setattr(account, name, value)
        # Only rows written by this thread's unit of work are discarded.
        appended = {id(entry) for entry in self._local.appended}
        activated = {id(activation) for activation in self._local.activated}
        with self._store_lock:
            self._ledger[:] = [entry for entry in self._ledger if id(entry) not in appended]
            self._activations[:] = [
                activation for activation in self._activations if id(activation) not in activated
            ]
        logger.warning(f"[REPO] Rolled back unit of work on {list(snapshot['accounts'])}")

    def add_account(self, account: Account) -> Account:
        if account.id is None:
            account.id = str(uuid.uuid4())
        for name in ("display_balance", "tracked_balance", "certified_balance", "total_recharged"):
            setattr(account, name, to_money(getattr(account, name) or 0))
        if account.referral_activated is None:
            account.referral_activated = False
        account.created_at = account.created_at or datetime.utcnow()
        account.updated_at = account.updated_at or account.created_at
        self._accounts[account.id] = account
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def get_account_by_username(self, username: str) -> Optional[Account]:
        for account in self._accounts.values():
            if account.username == username:
                return account
        return None

    def save_account_balances(self, account_id: str, balances: BalanceTriple) -> Account:
        account = self.require_account(account_id)
        _apply_balances(account, balances)
        return account

    def set_total_recharged(self, account_id: str, total: Decimal) -> Account:
        account = self.require_account(account_id)
        account.total_recharged = to_money(total)
        return account

    def mark_referral_activated(self, account_id: str) -> Account:
        account = self.require_account(account_id)
        account.referral_activated = True
        return account

    def _in_unit_of_work(self) -> bool:
        return getattr(self._local, "depth", 0) > 0

    def append_transaction(self, entry: LedgerEntry) -> LedgerEntry:
        with self._store_lock:
            self._ledger.append(entry)
        if self._in_unit_of_work():
            self._local.appended.append(entry)
        return entry

    def list_transactions(self, account_id: str) -> List[LedgerEntry]:
        # Reversed first so entries sharing a timestamp also come out newest first.
        with self._store_lock:
            entries = [entry for entry in self._ledger if entry.account_id == account_id]
        entries.reverse()
        return sorted(entries, key=lambda entry: entry.occurred_at, reverse=True)

    def get_transaction(self, entry_id: str) -> Optional[LedgerEntry]:
        for entry in self._ledger:
            if entry.id == entry_id:
                return entry
        return None

    def update_transaction(
        self,
        entry_id: str,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Optional[LedgerEntry]:
        entry = self.get_transaction(entry_id)
        if entry is None:
            return None
        if amount is not None:
            entry.amount = to_money(amount)
        if description is not None:
            entry.description = description
        entry.updated_at = datetime.utcnow()
        return entry

    def has_referral_activation(self, referred_id: str) -> bool:
        return any(activation.referred_id == referred_id for activation in self._activations)

    def create_referral_activation(
        self, referrer_id: str, referred_id: str, bonus_amount: Decimal
    ) -> ReferralActivation:
        with self._store_lock:
            activation = ReferralActivation(
                id=self._next_activation_id,
                referrer_id=referrer_id,
                referred_id=referred_id,
                bonus_amount=to_money(bonus_amount),
                activated_at=datetime.utcnow(),
            )
            self._next_activation_id += 1
            self._activations.append(activation)
        if self._in_unit_of_work():
            self._local.activated.append(activation)
        return activation

    def list_referral_activations(self) -> List[ReferralActivation]:
        return list(reversed(self._activations))

    def get_app_setting(self, key: str) -> Optional[str]:
        return self._settings.get(key)

    def set_app_setting(self, key: str, value: str) -> None:
        self._settings[key] = value

    def get_preset_settings(self, account_id: str) -> Optional[PresetSettings]:
        return self._preset_settings.get(account_id)

    def save_preset_settings(
        self,
        account_id: str,
        disabled_presets: Optional[List[str]] = None,
        deleted_presets: Optional[List[str]] = None,
    ) -> PresetSettings:
        settings = self._preset_settings.get(account_id)
        if settings is None:
            settings = PresetSettings(account_id=account_id, disabled_presets=[], deleted_presets=[])
            self._preset_settings[account_id] = settings
        if disabled_presets is not None:
            settings.disabled_presets = list(disabled_presets)
        if deleted_presets is not None:
            settings.deleted_presets = list(deleted_presets)
        return settings

    def list_custom_presets(self, account_id: str) -> List[CustomPreset]:
        return [preset for preset in self._custom_presets if preset.account_id == account_id]

    def add_custom_preset(self, preset: CustomPreset) -> CustomPreset:
        if preset.id is None:
            preset.id = str(uuid.uuid4())
        if preset.is_enabled is None:
            preset.is_enabled = True
        preset.created_at = preset.created_at or datetime.utcnow()
        self._custom_presets.append(preset)
        return preset
