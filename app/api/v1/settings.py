"""
Settings API endpoints
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_auth
from app.application.box_settings import SettingsService
from app.domain.errors import (
    PersistenceError, SettingsConflictError, SettingsNotInitialized, SettingsValidationError,
)
from app.domain.settings_cascade import FieldSource


router = APIRouter(prefix="/api/v1/settings", tags=["settings"], dependencies=[Depends(require_auth)])

# Numbers are parsed by the settings cascade (comma decimals, ranges)
NumberInput = StrictInt | StrictFloat | str | None


# === Request/Response models ===

class SettingsUpdateRequest(BaseModel):
    """
    Partial settings change. Omitted fields stay as they are (or get derived);
    unknown keys are kept so the cascade can reject them by name.
    """
    model_config = ConfigDict(extra="allow")

    annual_turnover: NumberInput = None
    base_box_price: NumberInput = None
    gross_margin_pct: NumberInput = None
    monthly_contribution_target: NumberInput = None
    survival_contribution: NumberInput = None
    target_boxes_per_month: NumberInput = None
    target_boxes_per_week: NumberInput = None
    target_install_pct: NumberInput = None
    target_extras_pct: NumberInput = None
    contribution_per_box: NumberInput = None
    cost_compliance_target: NumberInput = None
    right_first_time_target: NumberInput = None

    # version_id the caller last saw
    expected_version: StrictInt | None = None

    def changes(self) -> dict[str, Any]:
        """Only the keys the caller actually sent (explicit null included)"""
        data = self.model_dump(exclude_unset=True, exclude={"expected_version"})
        data.update(self.model_extra or {})
        return data


class SettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    annual_turnover: Decimal | None
    base_box_price: Decimal | None
    gross_margin_pct: Decimal
    monthly_contribution_target: Decimal
    survival_contribution: Decimal
    target_boxes_per_month: int
    target_boxes_per_week: int
    target_install_pct: Decimal
    target_extras_pct: Decimal
    contribution_per_box: Decimal
    cost_compliance_target: Decimal
    right_first_time_target: Decimal
    version_id: int
    updated_at: datetime


class SettingsUpdateResponse(BaseModel):
    success: bool = True
    settings: SettingsResponse


class SettingsPreviewResponse(BaseModel):
    changes: dict[str, int | Decimal | None]
    sources: dict[str, FieldSource]


# === Endpoints ===

@router.get("", response_model=SettingsResponse)
def read_settings(db: Session = Depends(get_db)):
    """Current settings (created with defaults on first access)"""
    return SettingsResponse.model_validate(SettingsService(db).get_or_create_settings())


@router.post("", response_model=SettingsUpdateResponse)
def update_settings(req: SettingsUpdateRequest, db: Session = Depends(get_db)):
    """
    Apply a partial settings change; dependent targets are recalculated
    unless supplied explicitly. Optional "expected_version" guards against
    overwriting someone else's change.
    """
    try:
        updated = SettingsService(db).update_settings(req.changes(), expected_version=req.expected_version)
    except SettingsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SettingsConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return SettingsUpdateResponse(settings=SettingsResponse.model_validate(updated))


@router.post("/preview", response_model=SettingsPreviewResponse)
def preview_settings(req: SettingsUpdateRequest, db: Session = Depends(get_db)):
    """Show what a change would write, without saving it"""
    try:
        resolution = SettingsService(db).preview(req.changes())
    except SettingsNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SettingsValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SettingsPreviewResponse(changes=resolution.changes, sources=resolution.sources)
