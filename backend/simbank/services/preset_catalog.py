"""Preset catalog: built-in and custom presets used to generate simulated transactions.

Presets are validated at construction, so a typo in a category or an inverted
amount range fails loudly instead of producing odd transactions later.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence


class Direction(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class PresetCategory(str, Enum):
    GROCERIES = "Supermercato"
    ELECTRONICS = "Elettronica"
    ONLINE_SHOPPING = "Acquisti Online"
    FUEL = "Carburante"
    DINING = "Ristorazione"
    HEALTH = "Salute"
    UTILITIES = "Utenze"
    BANK_TRANSFERS = "Bonifici"
    RENT = "Affitti"
    INVESTMENTS = "Investimenti"
    SALARY = "Stipendio"
    REFUNDS = "Rimborsi"
    PENSION = "Pensione"
    TRANSFERS = "Trasferimenti"
    TOP_UP = "Ricariche"
    REFERRAL_BONUS = "Bonus invito"


def preset_key(description: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", description.strip().lower()).strip("-")
    return slug or "preset"


@dataclass(frozen=True)
class Preset:
    key: str
    description: str
    direction: Direction
    category: PresetCategory
    min_amount: int
    max_amount: int
    fixed_amounts: tuple[int, ...] = field(default_factory=tuple)
    is_custom: bool = False

    def __post_init__(self) -> None:
        if not self.description or not self.description.strip():
            raise ValueError("Preset description is required")
        if not self.key:
            raise ValueError("Preset key is required")
        object.__setattr__(self, "direction", Direction(self.direction))
        object.__setattr__(self, "category", PresetCategory(self.category))
        if int(self.min_amount) <= 0 or int(self.max_amount) <= 0:
            raise ValueError(f"Preset {self.key}: amounts must be positive")
        if int(self.min_amount) > int(self.max_amount):
            raise ValueError(f"Preset {self.key}: min_amount is greater than max_amount")
        object.__setattr__(self, "min_amount", int(self.min_amount))
        object.__setattr__(self, "max_amount", int(self.max_amount))
        fixed = tuple(int(amount) for amount in (self.fixed_amounts or ()))
        if any(amount <= 0 for amount in fixed):
            raise ValueError(f"Preset {self.key}: fixed amounts must be positive")
        object.__setattr__(self, "fixed_amounts", fixed)

    @property
    def is_expense(self) -> bool:
        return self.direction is Direction.EXPENSE


def _builtin(
    description: str,
    direction: Direction,
    category: PresetCategory,
    min_amount: int,
    max_amount: int,
    fixed_amounts: Sequence[int] = (),
) -> Preset:
    return Preset(
        key=preset_key(description),
        description=description,
        direction=direction,
        category=category,
        min_amount=min_amount,
        max_amount=max_amount,
        fixed_amounts=tuple(fixed_amounts),
    )


_E = Direction.EXPENSE
_I = Direction.INCOME

DEFAULT_PRESETS: tuple[Preset, ...] = (
    _builtin("LIDL ITALIA", _E, PresetCategory.GROCERIES, 8, 90),
    _builtin("COOP ALLEANZA", _E, PresetCategory.GROCERIES, 10, 120),
    _builtin("ESSELUNGA", _E, PresetCategory.GROCERIES, 12, 140),
    _builtin("CONAD", _E, PresetCategory.GROCERIES, 6, 80),
    _builtin("CARREFOUR", _E, PresetCategory.GROCERIES, 8, 110),
    _builtin("EURONICS", _E, PresetCategory.ELECTRONICS, 20, 350),
    _builtin("MEDIAWORLD", _E, PresetCategory.ELECTRONICS, 25, 400),
    _builtin("UNIEURO", _E, PresetCategory.ELECTRONICS, 20, 300),
    _builtin("AMAZON EU", _E, PresetCategory.ONLINE_SHOPPING, 10, 150),
    _builtin("ENI STATION", _E, PresetCategory.FUEL, 20, 80, fixed_amounts=(20, 30, 50, 70)),
    _builtin("Q8 STATION", _E, PresetCategory.FUEL, 20, 80, fixed_amounts=(20, 40, 60)),
    _builtin("TAMOIL", _E, PresetCategory.FUEL, 20, 70),
    _builtin("RISTORANTE LA PERGOLA", _E, PresetCategory.DINING, 40, 180),
    _builtin("TRATTORIA DA MARIO", _E, PresetCategory.DINING, 18, 75),
    _builtin("FARMACIA COMUNALE", _E, PresetCategory.HEALTH, 5, 60),
    _builtin("ENEL ENERGIA", _E, PresetCategory.UTILITIES, 45, 160),
    _builtin("TELECOM ITALIA", _E, PresetCategory.UTILITIES, 25, 45, fixed_amounts=(29, 35, 39)),
    _builtin("VODAFONE ITALIA", _E, PresetCategory.UTILITIES, 10, 30, fixed_amounts=(10, 15, 20)),
    _builtin("BONIFICO DA ROSSI MARIO", _I, PresetCategory.BANK_TRANSFERS, 50, 500),
    _builtin("BONIFICO DA BIANCHI SRL", _I, PresetCategory.BANK_TRANSFERS, 100, 1200),
    _builtin("INCASSO AFFITTO IMMOBILE", _I, PresetCategory.RENT, 400, 900),
    _builtin("DIVIDENDI AZIONI ENEL", _I, PresetCategory.INVESTMENTS, 20, 250),
    _builtin("CEDOLE TITOLI DI STATO", _I, PresetCategory.INVESTMENTS, 30, 300),
    _builtin("STIPENDIO AZIENDA SPA", _I, PresetCategory.SALARY, 1400, 2200),
    _builtin("RIMBORSO SPESE", _I, PresetCategory.REFUNDS, 10, 150),
    _builtin("ACCREDITO PENSIONE INPS", _I, PresetCategory.PENSION, 800, 1500),
)


def preset_from_custom(custom) -> Preset:
    """Build a validated Preset from a stored CustomPreset row."""
    return Preset(
        key=str(custom.id),
        description=custom.description,
        direction=custom.direction,
        category=custom.category,
        min_amount=custom.min_amount,
        max_amount=custom.max_amount,
        fixed_amounts=tuple(custom.fixed_amounts or ()),
        is_custom=True,
    )


def build_catalog(
    custom_presets: Iterable = (),
    deleted_keys: Iterable[str] = (),
    base: Sequence[Preset] = DEFAULT_PRESETS,
) -> list[Preset]:
    """Merge built-in presets with the account's enabled custom presets, minus deleted keys."""
    deleted = set(deleted_keys)
    catalog = [preset for preset in base if preset.key not in deleted]
    for custom in custom_presets:
        if custom.is_enabled is False:
            continue
        preset = preset_from_custom(custom)
        if preset.key not in deleted:
            catalog.append(preset)
    return catalog


def find_preset(catalog: Iterable[Preset], key: str) -> Optional[Preset]:
    for preset in catalog:
        if preset.key == key:
            return preset
    return None


def eligible_expense_presets(
    catalog: Iterable[Preset],
    disabled_keys: Iterable[str] = (),
    exclusions: Iterable[str] = (),
) -> list[Preset]:
    skip = set(disabled_keys) | set(exclusions)
    return [preset for preset in catalog if preset.is_expense and preset.key not in skip]


def sample_amount(preset: Preset, rng: random.Random) -> Decimal:
    """Draw a whole-unit amount from the preset's fixed set, or uniformly from its range."""
    if preset.fixed_amounts:
        return Decimal(rng.choice(preset.fixed_amounts))
    return Decimal(rng.randint(preset.min_amount, preset.max_amount))
