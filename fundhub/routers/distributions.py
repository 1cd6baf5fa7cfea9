"""
Distribution Router — /api/distributions

Distributions of cash to a structure's partners, with waterfall
application and pro-rata investor allocations.

Endpoints:
    GET    /api/distributions                         — List (optional structureId)
    POST   /api/distributions                         — Create distribution
    GET    /api/distributions/{id}                    — Get distribution
    DELETE /api/distributions/{id}                    — Delete distribution
    POST   /api/distributions/{id}/apply-waterfall    — Run the structure's waterfall
    POST   /api/distributions/{id}/create-allocations — Split LP pool across investors
    GET    /api/distributions/{id}/allocations        — List allocations
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import crud
from ..errors import AppError
from ..schemas import (
    DistributionCreate, DistributionResponse, WaterfallApplicationResponse,
    AllocationResponse,
)
from .common import get_user_id, to_http

router = APIRouter(prefix="/api/distributions", tags=["Distributions"])


@router.get("", response_model=list[DistributionResponse])
def list_distributions(
    structure_id: Optional[str] = Query(None, alias="structureId"),
    db: Session = Depends(get_db),
):
    return crud.list_distributions(db, structure_id=structure_id)


@router.post("", response_model=DistributionResponse, status_code=201)
def create_distribution(
    data: DistributionCreate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    if not crud.get_structure(db, data.structure_id):
        raise HTTPException(status_code=404, detail=f"Structure {data.structure_id} not found")
    try:
        return crud.create_distribution(db, data, user_id)
    except AppError as e:
        raise to_http(e)


@router.get("/{distribution_id}", response_model=DistributionResponse)
def get_distribution(distribution_id: str, db: Session = Depends(get_db)):
    distribution = crud.get_distribution(db, distribution_id)
    if not distribution:
        raise HTTPException(status_code=404, detail=f"Distribution {distribution_id} not found")
    return distribution


@router.delete("/{distribution_id}", status_code=200)
def delete_distribution(
    distribution_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        deleted = crud.delete_distribution(db, distribution_id)
    except AppError as e:
        raise to_http(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Distribution {distribution_id} not found")
    return {"detail": f"Distribution {distribution_id} deleted successfully"}


@router.post("/{distribution_id}/apply-waterfall", response_model=WaterfallApplicationResponse)
def apply_waterfall(
    distribution_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """
    Compute tier amounts and LP/GP totals from the structure's active tiers.
    Returns 409 if already applied or the structure has no active tiers.
    """
    try:
        return crud.apply_waterfall(db, distribution_id)
    except AppError as e:
        raise to_http(e)


@router.post(
    "/{distribution_id}/create-allocations",
    response_model=list[AllocationResponse],
    status_code=201,
)
def create_allocations(
    distribution_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Split the LP pool across investors by ownership. Requires an applied waterfall."""
    try:
        return crud.create_allocations(db, distribution_id)
    except AppError as e:
        raise to_http(e)


@router.get("/{distribution_id}/allocations", response_model=list[AllocationResponse])
def list_allocations(distribution_id: str, db: Session = Depends(get_db)):
    if not crud.get_distribution(db, distribution_id):
        raise HTTPException(status_code=404, detail=f"Distribution {distribution_id} not found")
    return crud.list_allocations(db, distribution_id)
