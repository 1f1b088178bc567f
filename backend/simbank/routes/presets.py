from typing import List

from fastapi import APIRouter, Depends, HTTPException

from simbank.dependencies import get_repository
from simbank.schemas import (
    CustomPresetCreate,
    PresetResponse,
    PresetSettingsResponse,
    PresetSettingsUpdate,
)
from simbank.services.account_repository import AccountRepository
from simbank.services.preset_catalog import Preset
from simbank.services.preset_settings_service import PresetSettingsService

router = APIRouter()


def _serialize_preset(preset: Preset, is_enabled: bool = True) -> PresetResponse:
    return PresetResponse(
        key=preset.key,
        description=preset.description,
        direction=preset.direction,
        category=preset.category,
        min_amount=preset.min_amount,
        max_amount=preset.max_amount,
        fixed_amounts=list(preset.fixed_amounts),
        is_custom=preset.is_custom,
        is_enabled=is_enabled,
    )


@router.get("/{account_id}", response_model=List[PresetResponse])
def list_presets(account_id: str, repository: AccountRepository = Depends(get_repository)):
    """Catalog for an account: built-ins plus custom presets, minus deleted ones."""
    items = PresetSettingsService(repository).catalog(account_id)
    return [_serialize_preset(item.preset, item.is_enabled) for item in items]


@router.put("/{account_id}/settings", response_model=PresetSettingsResponse)
def update_preset_settings(
    account_id: str,
    updates: PresetSettingsUpdate,
    repository: AccountRepository = Depends(get_repository),
):
    settings = PresetSettingsService(repository).update_settings(
        account_id,
        disabled_presets=updates.disabled_presets,
        deleted_presets=updates.deleted_presets,
    )
    return PresetSettingsResponse(
        account_id=settings.account_id,
        disabled_presets=list(settings.disabled_presets or []),
        deleted_presets=list(settings.deleted_presets or []),
    )


@router.post("/{account_id}/custom", response_model=PresetResponse, status_code=201)
def create_custom_preset(
    account_id: str,
    preset: CustomPresetCreate,
    repository: AccountRepository = Depends(get_repository),
):
    try:
        created = PresetSettingsService(repository).add_custom_preset(
            account_id,
            description=preset.description,
            direction=preset.direction,
            category=preset.category,
            min_amount=preset.min_amount,
            max_amount=preset.max_amount,
            fixed_amounts=preset.fixed_amounts,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_preset(created)
