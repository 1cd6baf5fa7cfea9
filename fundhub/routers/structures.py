"""
Structure Router — /api/structures

Investment vehicles and their investor commitments.

Endpoints:
    GET    /api/structures                                   — List structures
    POST   /api/structures                                   — Create structure
    GET    /api/structures/{id}                              — Get structure
    PUT    /api/structures/{id}                              — Update structure
    DELETE /api/structures/{id}                              — Delete (cascades)
    GET    /api/structures/{id}/investors                    — List investors
    POST   /api/structures/{id}/investors                    — Add investor
    PUT    /api/structures/{id}/investors/{investor_id}      — Update investor terms
    DELETE /api/structures/{id}/investors/{investor_id}      — Remove investor
    GET    /api/structures/{id}/commitment                   — Total commitment
    POST   /api/structures/{id}/recalculate-ownership        — Ownership from commitments
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from .. import crud
from ..errors import AppError
from ..schemas import (
    StructureCreate, StructureUpdate, StructureResponse,
    StructureInvestorCreate, StructureInvestorUpdate, StructureInvestorResponse,
    CommitmentResponse,
)
from .common import get_user_id, to_http

router = APIRouter(prefix="/api/structures", tags=["Structures"])


def _require_structure(db: Session, structure_id: str):
    structure = crud.get_structure(db, structure_id)
    if not structure:
        raise HTTPException(status_code=404, detail=f"Structure {structure_id} not found")
    return structure


def _require_investor(db: Session, structure_id: str, investor_id: str):
    investor = crud.get_structure_investor(db, investor_id)
    if not investor or investor.structure_id != structure_id:
        raise HTTPException(
            status_code=404,
            detail=f"Investor {investor_id} not found in structure {structure_id}",
        )
    return investor


# ---------------------------------------------------------------------------
# STRUCTURE CRUD
# ---------------------------------------------------------------------------

@router.get("", response_model=list[StructureResponse])
def list_structures(
    user_id: Optional[str] = Query(None, alias="userId", description="Filter by owner"),
    structure_type: Optional[str] = Query(None, alias="type", description="Filter by type"),
    status: Optional[str] = Query(None, description="Filter by status"),
    db: Session = Depends(get_db),
):
    return crud.list_structures(db, user_id=user_id, structure_type=structure_type, status=status)


@router.post("", response_model=StructureResponse, status_code=201)
def create_structure(
    data: StructureCreate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        return crud.create_structure(db, data, user_id)
    except AppError as e:
        raise to_http(e)


@router.get("/{structure_id}", response_model=StructureResponse)
def get_structure(structure_id: str, db: Session = Depends(get_db)):
    return _require_structure(db, structure_id)


@router.put("/{structure_id}", response_model=StructureResponse)
def update_structure(
    structure_id: str,
    data: StructureUpdate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Update an existing structure. Only provided fields are updated."""
    try:
        structure = crud.update_structure(db, structure_id, data)
    except AppError as e:
        raise to_http(e)
    if not structure:
        raise HTTPException(status_code=404, detail=f"Structure {structure_id} not found")
    return structure


@router.delete("/{structure_id}", status_code=200)
def delete_structure(
    structure_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Delete a structure together with its tiers, investors and distributions."""
    try:
        deleted = crud.delete_structure(db, structure_id)
    except AppError as e:
        raise to_http(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Structure {structure_id} not found")
    return {"detail": f"Structure {structure_id} deleted successfully"}


# ---------------------------------------------------------------------------
# INVESTORS & COMMITMENTS
# ---------------------------------------------------------------------------

@router.get("/{structure_id}/investors", response_model=list[StructureInvestorResponse])
def list_investors(structure_id: str, db: Session = Depends(get_db)):
    _require_structure(db, structure_id)
    return crud.list_structure_investors(db, structure_id)


@router.post(
    "/{structure_id}/investors",
    response_model=StructureInvestorResponse,
    status_code=201,
)
def add_investor(
    structure_id: str,
    data: StructureInvestorCreate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Link an investor to the structure. Returns 409 if already linked."""
    _require_structure(db, structure_id)
    try:
        return crud.add_structure_investor(db, structure_id, data)
    except AppError as e:
        raise to_http(e)


@router.put(
    "/{structure_id}/investors/{investor_id}",
    response_model=StructureInvestorResponse,
)
def update_investor(
    structure_id: str,
    investor_id: str,
    data: StructureInvestorUpdate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    _require_investor(db, structure_id, investor_id)
    try:
        return crud.update_structure_investor(db, investor_id, data)
    except AppError as e:
        raise to_http(e)


@router.delete("/{structure_id}/investors/{investor_id}", status_code=200)
def remove_investor(
    structure_id: str,
    investor_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    _require_investor(db, structure_id, investor_id)
    try:
        crud.delete_structure_investor(db, investor_id)
    except AppError as e:
        raise to_http(e)
    return {"detail": f"Investor {investor_id} removed from structure {structure_id}"}


@router.get("/{structure_id}/commitment", response_model=CommitmentResponse)
def get_commitment(structure_id: str, db: Session = Depends(get_db)):
    """Total commitment across the structure's investors."""
    _require_structure(db, structure_id)
    try:
        total = crud.get_total_commitment(db, structure_id)
    except AppError as e:
        raise to_http(e)
    return {
        "structure_id": structure_id,
        "total_commitment": total,
        "investor_count": len(crud.list_structure_investors(db, structure_id)),
    }


@router.post(
    "/{structure_id}/recalculate-ownership",
    response_model=list[StructureInvestorResponse],
)
def recalculate_ownership(
    structure_id: str,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Set each investor's ownership percent to its share of total commitment."""
    _require_structure(db, structure_id)
    try:
        return crud.recalculate_ownership(db, structure_id)
    except AppError as e:
        raise to_http(e)
