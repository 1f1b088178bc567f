"""
Pure balance arithmetic for the three parallel balances of an account.

Nothing here touches storage. Callers read the current triple, compute the new one
with these helpers and persist it inside a repository unit of work.

Simulated flows work in whole currency units: amounts are floored before they are
applied, so fractional cents never enter a simulated balance change.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

from simbank.errors import InsufficientFunds, InvalidAmount, RecoveryExhausted

ZERO = Decimal("0")
CENT = Decimal("0.01")

AmountLike = Union[Decimal, int, float, str]


@dataclass(frozen=True)
class BalanceTriple:
    display: Decimal
    tracked: Decimal
    certified: Decimal

    @classmethod
    def of(cls, account) -> "BalanceTriple":
        return cls(
            display=to_money(account.display_balance or ZERO),
            tracked=to_money(account.tracked_balance or ZERO),
            certified=to_money(account.certified_balance or ZERO),
        )

    def clamped(self) -> "BalanceTriple":
        """Clamp transient negative values to zero before persistence."""
        return BalanceTriple(
            display=max(ZERO, self.display),
            tracked=max(ZERO, self.tracked),
            certified=max(ZERO, self.certified),
        )


@dataclass(frozen=True)
class CappedIncome:
    requested: Decimal
    applied: Decimal

    @property
    def was_capped(self) -> bool:
        return self.applied < self.requested


def _to_decimal(value: AmountLike) -> Decimal:
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidAmount(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return amount


def to_money(value: AmountLike) -> Decimal:
    return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: AmountLike) -> str:
    """Fixed two-decimal string form used at the persistence and API boundary."""
    return f"{to_money(value):.2f}"


def floor_amount(value: AmountLike) -> Decimal:
    """Floor to whole currency units."""
    return to_money(_to_decimal(value).to_integral_value(rounding=ROUND_FLOOR))


def parse_simulated_amount(value: AmountLike) -> Decimal:
    """Validate a requested simulated amount and floor it to whole units."""
    amount = floor_amount(value)
    if amount <= ZERO:
        raise InvalidAmount(f"Amount must be at least 1, got {value!r}")
    return amount


def parse_whole_amount(value: AmountLike) -> Decimal:
    """Validate an amount that must already be a positive whole number (transfers)."""
    amount = _to_decimal(value)
    if amount <= ZERO:
        raise InvalidAmount("Amount must be greater than zero")
    if amount != amount.to_integral_value():
        raise InvalidAmount("Amount must be a whole number")
    return to_money(amount)


def parse_money_amount(value: AmountLike) -> Decimal:
    """Validate a positive amount with cent precision (administrative top-ups)."""
    amount = _to_decimal(value)
    if amount <= ZERO:
        raise InvalidAmount("Amount must be greater than zero")
    if amount != amount.quantize(CENT):
        raise InvalidAmount("Amount cannot have more than two decimals")
    return to_money(amount)


def recovery_margin(balances: BalanceTriple) -> Decimal:
    """Room for simulated income before the display balance reaches the certified ceiling."""
    return max(ZERO, balances.certified - balances.display)


def preset_recovery_margin(total_recharged: AmountLike, certified: AmountLike) -> Decimal:
    """Lifetime top-ups not yet replayed as certified income."""
    return max(ZERO, to_money(total_recharged) - to_money(certified))


def cap_income(requested: AmountLike, margin: AmountLike) -> CappedIncome:
    """
    Cap a requested income to the available margin.

    Raises RecoveryExhausted when there is no margin left at all; in that case no
    transaction may be created.
    """
    requested_amount = parse_simulated_amount(requested)
    available = floor_amount(max(ZERO, _to_decimal(margin)))
    if available <= ZERO:
        raise RecoveryExhausted("Balance already at maximum")
    return CappedIncome(requested=requested_amount, applied=min(requested_amount, available))


def apply_expense(balances: BalanceTriple, amount: AmountLike) -> BalanceTriple:
    """Simulated expense: display and tracked go down (never below zero), certified is untouched."""
    delta = abs(to_money(amount))
    return replace(
        balances,
        display=max(ZERO, balances.display - delta),
        tracked=max(ZERO, balances.tracked - delta),
    )


def apply_income(balances: BalanceTriple, amount: AmountLike) -> BalanceTriple:
    """Simulated income: display and tracked go up, certified is untouched."""
    delta = abs(to_money(amount))
    return replace(
        balances,
        display=balances.display + delta,
        tracked=balances.tracked + delta,
    )


def apply_certified_expense(balances: BalanceTriple, amount: AmountLike) -> BalanceTriple:
    """
    Spend certified money: all three balances go down.

    Requires a positive certified balance that covers the whole amount.
    """
    delta = abs(to_money(amount))
    if balances.certified <= ZERO:
        raise InsufficientFunds("No certified balance available")
    if delta > balances.certified:
        raise InsufficientFunds(
            f"Amount {format_amount(delta)} exceeds certified balance {format_amount(balances.certified)}"
        )
    return debit_all(balances, delta)


def debit_all(balances: BalanceTriple, amount: AmountLike) -> BalanceTriple:
    delta = abs(to_money(amount))
    return BalanceTriple(
        display=balances.display - delta,
        tracked=balances.tracked - delta,
        certified=balances.certified - delta,
    ).clamped()


def credit_all(balances: BalanceTriple, amount: AmountLike) -> BalanceTriple:
    delta = abs(to_money(amount))
    return BalanceTriple(
        display=balances.display + delta,
        tracked=balances.tracked + delta,
        certified=balances.certified + delta,
    )
