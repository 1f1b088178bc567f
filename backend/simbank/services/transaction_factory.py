"""
Builds canonical ledger records paired with the signed delta they represent.
The factory never persists anything; callers commit the entry together with the
balance update inside one unit of work.
"""
import random
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from simbank.models import LedgerEntry
from simbank.services.balance_calculator import format_amount
from simbank.services.preset_catalog import Direction, PresetCategory

DEFAULT_POSTED_PROBABILITY = 0.85


@dataclass(frozen=True)
class GeneratedTransaction:
    entry: LedgerEntry
    delta: Decimal  # negative for expenses, positive for income


class TransactionFactory:
    """Creates LedgerEntry objects for every generation path."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        posted_probability: float = DEFAULT_POSTED_PROBABILITY,
    ):
        self.rng = rng or random.Random()
        self.posted_probability = posted_probability

    def build(
        self,
        account_id: str,
        description: str,
        category: Union[PresetCategory, str],
        amount,
        direction: Union[Direction, str],
        is_certified: bool = False,
        is_simulated: bool = True,
        is_posted: bool = True,
        counterparty_account_number: Optional[str] = None,
        occurred_at: Optional[datetime] = None,
    ) -> GeneratedTransaction:
        direction = Direction(direction)
        category_value = category.value if isinstance(category, PresetCategory) else str(category)
        # Stored amount is the positive two-decimal form; the sign lives in direction.
        stored_amount = Decimal(format_amount(abs(Decimal(str(amount)))))
        now = datetime.utcnow()
        entry = LedgerEntry(
            id=str(uuid.uuid4()),
            account_id=account_id,
            description=description.strip(),
            category=category_value,
            direction=direction.value,
            amount=stored_amount,
            is_certified=is_certified,
            is_simulated=is_simulated,
            is_posted=is_posted,
            counterparty_account_number=counterparty_account_number,
            occurred_at=occurred_at or now,
            created_at=now,
            updated_at=now,
        )
        delta = -stored_amount if direction is Direction.EXPENSE else stored_amount
        return GeneratedTransaction(entry=entry, delta=delta)

    def quick_random_expense(self, account_id: str, preset, amount) -> GeneratedTransaction:
        """Simulated, uncertified expense with a random pending/settled flag."""
        return self.build(
            account_id=account_id,
            description=preset.description,
            category=preset.category,
            amount=amount,
            direction=Direction.EXPENSE,
            is_certified=False,
            is_posted=self.rng.random() < self.posted_probability,
        )

    def certified_preset(self, account_id: str, preset, amount) -> GeneratedTransaction:
        return self.build(
            account_id=account_id,
            description=preset.description,
            category=preset.category,
            amount=amount,
            direction=preset.direction,
            is_certified=True,
        )

    def manual(self, account_id: str, description: str, category, amount, direction) -> GeneratedTransaction:
        return self.build(
            account_id=account_id,
            description=description,
            category=category,
            amount=amount,
            direction=direction,
            is_certified=False,
        )

    def real_movement(
        self,
        account_id: str,
        description: str,
        category,
        amount,
        direction,
        counterparty_account_number: Optional[str] = None,
    ) -> GeneratedTransaction:
        """Transfers, top-ups and bonuses: certified and not simulated."""
        return self.build(
            account_id=account_id,
            description=description,
            category=category,
            amount=amount,
            direction=direction,
            is_certified=True,
            is_simulated=False,
            counterparty_account_number=counterparty_account_number,
        )
