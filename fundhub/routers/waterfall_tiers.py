"""
Waterfall Tier Router — /api/waterfall-tiers

Manages the LP/GP distribution tiers of a structure: single-tier CRUD,
the canonical default waterfall, bulk edits, deactivation and summaries.

Endpoints:
    GET    /api/waterfall-tiers                              — List tiers (filters)
    POST   /api/waterfall-tiers                              — Create a tier
    POST   /api/waterfall-tiers/validate                     — Validate without saving
    GET    /api/waterfall-tiers/{id}                         — Get a tier
    PUT    /api/waterfall-tiers/{id}                         — Update a tier
    DELETE /api/waterfall-tiers/{id}                         — Hard-delete a tier
    GET    /api/waterfall-tiers/structure/{sid}              — All tiers of a structure
    GET    /api/waterfall-tiers/structure/{sid}/active       — Active tiers
    GET    /api/waterfall-tiers/structure/{sid}/summary      — Waterfall summary
    POST   /api/waterfall-tiers/structure/{sid}/defaults     — Create default 4-tier set
    PUT    /api/waterfall-tiers/structure/{sid}/bulk         — Bulk update/create
    PATCH  /api/waterfall-tiers/structure/{sid}/deactivate   — Deactivate all tiers
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import crud
from ..engines.tiers import validate_tier
from ..errors import AppError
from ..schemas import (
    WaterfallTierCreate, WaterfallTierUpdate, WaterfallTierResponse,
    BulkTierRequest, DefaultTiersRequest, TierValidationResponse,
    WaterfallSummaryResponse,
)
from .common import get_user_id, to_http

router = APIRouter(prefix="/api/waterfall-tiers", tags=["Waterfall Tiers"])


def _require_structure(db: Session, structure_id: str):
    structure = crud.get_structure(db, structure_id)
    if not structure:
        raise HTTPException(status_code=404, detail=f"Structure {structure_id} not found")
    return structure


def _reject_invalid(tier: Any) -> None:
    validation = validate_tier(tier)
    if not validation.is_valid:
        raise HTTPException(
            status_code=400,
            detail={
                "detail": "Invalid waterfall tier",
                "error_code": "VALIDATION_ERROR",
                "errors": validation.errors,
            },
        )


# ---------------------------------------------------------------------------
# SINGLE TIER CRUD
# ---------------------------------------------------------------------------

@router.get("", response_model=list[WaterfallTierResponse])
def list_tiers(
    structure_id: Optional[str] = Query(None, alias="structureId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
):
    """List tiers, optionally filtered by structure, creator or active flag."""
    try:
        return crud.list_tiers(db, structure_id=structure_id, user_id=user_id, is_active=is_active)
    except AppError as e:
        raise to_http(e)


@router.post("", response_model=WaterfallTierResponse, status_code=201)
def create_tier(
    data: WaterfallTierCreate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """
    Create one tier. Returns 400 with every validation error when the
    tier breaks a numeric rule, 409 if the structure already has an
    active tier with this number.
    """
    _reject_invalid(data)
    _require_structure(db, data.structure_id)
    try:
        return crud.create_tier(db, data, user_id)
    except AppError as e:
        raise to_http(e)


@router.post("/validate", response_model=TierValidationResponse)
def validate(tier: dict = Body(...)):
    """Run the tier validator on a camelCase tier payload without saving it."""
    return validate_tier(tier).to_dict()


@router.get("/{tier_id}", response_model=WaterfallTierResponse)
def get_tier(tier_id: str, db: Session = Depends(get_db)):
    try:
        tier = crud.get_tier(db, tier_id)
    except AppError as e:
        raise to_http(e)
    if not tier:
        raise HTTPException(status_code=404, detail=f"Waterfall tier {tier_id} not found")
    return tier


@router.put("/{tier_id}", response_model=WaterfallTierResponse)
def update_tier(
    tier_id: str,
    data: WaterfallTierUpdate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Update the supplied fields; the merged tier must still validate."""
    try:
        existing = crud.get_tier(db, tier_id)
        if not existing:
            raise HTTPException(status_code=404, detail=f"Waterfall tier {tier_id} not found")

        merged = {
            "tier_number": existing.tier_number,
            "lp_share_percent": existing.lp_share_percent,
            "gp_share_percent": existing.gp_share_percent,
            "threshold_irr": existing.threshold_irr,
            "threshold_amount": existing.threshold_amount,
        }
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in merged and (value is not None or field.startswith("threshold_")):
                merged[field] = value
        _reject_invalid(merged)

        return crud.update_tier(db, tier_id, data)
    except AppError as e:
        raise to_http(e)


@router.delete("/{tier_id}", status_code=200)
def delete_tier(
    tier_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Hard-delete a tier. Redefining a waterfall should deactivate instead."""
    try:
        deleted = crud.delete_tier(db, tier_id)
    except AppError as e:
        raise to_http(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Waterfall tier {tier_id} not found")
    return {"detail": f"Waterfall tier {tier_id} deleted successfully"}


# ---------------------------------------------------------------------------
# STRUCTURE-LEVEL OPERATIONS
# ---------------------------------------------------------------------------

@router.get("/structure/{structure_id}", response_model=list[WaterfallTierResponse])
def list_structure_tiers(structure_id: str, db: Session = Depends(get_db)):
    """All tiers of a structure, active and inactive, in payout order."""
    try:
        return crud.list_tiers(db, structure_id=structure_id)
    except AppError as e:
        raise to_http(e)


@router.get("/structure/{structure_id}/active", response_model=list[WaterfallTierResponse])
def list_active_structure_tiers(structure_id: str, db: Session = Depends(get_db)):
    try:
        return crud.list_active_tiers(db, structure_id)
    except AppError as e:
        raise to_http(e)


@router.get("/structure/{structure_id}/summary", response_model=WaterfallSummaryResponse)
def get_waterfall_summary(structure_id: str, db: Session = Depends(get_db)):
    """Tier number, name, LP/GP split and threshold of each active tier."""
    try:
        return crud.get_waterfall_summary(db, structure_id)
    except AppError as e:
        raise to_http(e)


@router.post(
    "/structure/{structure_id}/defaults",
    response_model=list[WaterfallTierResponse],
    status_code=201,
)
def create_default_tiers(
    structure_id: str,
    data: Optional[DefaultTiersRequest] = None,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """
    Create the standard Return of Capital / Preferred Return / GP Catch-up /
    Carried Interest waterfall. Hurdle and carry default to the structure's
    hurdle_rate and carried_interest. Returns 409 if tiers already exist.
    """
    structure = _require_structure(db, structure_id)
    hurdle = data.hurdle_rate_percent if data and data.hurdle_rate_percent is not None else structure.hurdle_rate
    carry = data.carry_percent if data and data.carry_percent is not None else structure.carried_interest
    try:
        return crud.create_default_tiers(db, structure_id, hurdle, carry, user_id)
    except AppError as e:
        raise to_http(e)


@router.put("/structure/{structure_id}/bulk", response_model=list[WaterfallTierResponse])
def bulk_update_tiers(
    structure_id: str,
    data: BulkTierRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """
    Apply edits in order (with id → update, without → create). On failure
    the error body lists completedIds (already saved) and failedIndex.
    """
    _require_structure(db, structure_id)
    try:
        return crud.bulk_update_tiers(db, structure_id, data.tiers, user_id)
    except AppError as e:
        raise to_http(e)


@router.patch("/structure/{structure_id}/deactivate", response_model=list[WaterfallTierResponse])
def deactivate_all_tiers(
    structure_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Deactivate every tier of the structure (rows are kept)."""
    try:
        return crud.deactivate_all_tiers(db, structure_id)
    except AppError as e:
        raise to_http(e)
