"""Per-account preset catalog management: visibility settings and custom presets."""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from simbank.models import CustomPreset
from simbank.services.account_repository import AccountRepository
from simbank.services.preset_catalog import Preset, build_catalog, preset_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogItem:
    preset: Preset
    is_enabled: bool


class PresetSettingsService:
    def __init__(self, repository: AccountRepository):
        self.repository = repository

    def catalog(self, account_id: str) -> List[CatalogItem]:
        self.repository.require_account(account_id)
        settings = self.repository.get_preset_settings(account_id)
        disabled = set(settings.disabled_presets if settings else [])
        deleted = settings.deleted_presets if settings else []
        presets = build_catalog(self.repository.list_custom_presets(account_id), deleted)
        return [CatalogItem(preset=p, is_enabled=p.key not in disabled) for p in presets]

    def update_settings(
        self,
        account_id: str,
        disabled_presets: Optional[Sequence[str]] = None,
        deleted_presets: Optional[Sequence[str]] = None,
    ):
        self.repository.require_account(account_id)
        return self.repository.save_preset_settings(
            account_id,
            disabled_presets=list(disabled_presets) if disabled_presets is not None else None,
            deleted_presets=list(deleted_presets) if deleted_presets is not None else None,
        )

    def add_custom_preset(
        self,
        account_id: str,
        description: str,
        direction: str,
        category: str,
        min_amount: int,
        max_amount: int,
        fixed_amounts: Optional[Sequence[int]] = None,
    ) -> Preset:
        self.repository.require_account(account_id)
        # Validate before storing; Preset raises ValueError on bad input.
        validated = Preset(
            key=preset_key(description),
            description=description,
            direction=direction,
            category=category,
            min_amount=min_amount,
            max_amount=max_amount,
            fixed_amounts=tuple(fixed_amounts or ()),
            is_custom=True,
        )
        row = self.repository.add_custom_preset(
            CustomPreset(
                account_id=account_id,
                description=validated.description,
                direction=validated.direction.value,
                category=validated.category.value,
                min_amount=validated.min_amount,
                max_amount=validated.max_amount,
                fixed_amounts=list(validated.fixed_amounts) or None,
                is_enabled=True,
            )
        )
        logger.info(f"[PRESET] Added custom preset {row.id} for account {account_id}")
        return Preset(
            key=str(row.id),
            description=validated.description,
            direction=validated.direction,
            category=validated.category,
            min_amount=validated.min_amount,
            max_amount=validated.max_amount,
            fixed_amounts=validated.fixed_amounts,
            is_custom=True,
        )
