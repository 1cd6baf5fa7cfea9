"""
FundHub CRUD Operations

Database access functions for all tables. These functions encapsulate
all SQLAlchemy queries and are called by API routers.

Architecture:
    - Each function takes a db: Session parameter (injected by FastAPI)
    - Functions return ORM model instances (routers convert to Pydantic)
    - Get functions return None if not found (routers raise 404)
    - List functions return lists (empty list if none found)
    - Store failures are rolled back and re-raised as errors.StoreError
      with a contextual message

Naming convention:
    - create_xxx: INSERT new record
    - get_xxx: SELECT single record by ID
    - list_xxx: SELECT multiple records with optional filters
    - update_xxx: UPDATE existing record
    - delete_xxx: DELETE record (CASCADE handles children)

Waterfall batches (create_default_tiers, bulk_update_tiers) commit one row
at a time. A failure stops the batch and raises a BatchError whose
`completed` lists the rows already committed; those are not rolled back.
"""

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .engines.distribution import (
    compute_waterfall, allocate_lp_pool, ownership_from_commitments,
)
from .engines.tiers import default_tier_templates, describe_threshold
from .errors import (
    StoreError, NotFound, PreconditionFailed, ValidationError,
    BatchNotFound, BatchStoreError, BatchValidationError,
)
from .models import (
    Structure, StructureInvestor, WaterfallTier, Distribution, DistributionAllocation,
)
from .schemas import (
    StructureCreate, StructureUpdate, StructureInvestorCreate, StructureInvestorUpdate,
    WaterfallTierCreate, WaterfallTierUpdate, TierEdit, DistributionCreate,
)

logger = logging.getLogger("fundhub.crud")

# Columns that may not be cleared to NULL by a partial update
_NON_NULL_TIER_FIELDS = {"tier_number", "lp_share_percent", "gp_share_percent", "is_active"}


@contextmanager
def _store_errors(db: Session, context: str):
    """Roll back and wrap any SQLAlchemy failure as StoreError('<context>: ...')."""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s: %s", context, e)
        raise StoreError(f"{context}: {e}") from e


def _apply_changes(obj, changes: dict, non_null: Iterable[str] = ()) -> None:
    non_null = set(non_null)
    for field, value in changes.items():
        if value is None and field in non_null:
            continue
        setattr(obj, field, value)


# ---------------------------------------------------------------------------
# STRUCTURE CRUD
# ---------------------------------------------------------------------------

def create_structure(db: Session, data: StructureCreate, user_id: str) -> Structure:
    """Create a new structure owned by user_id."""
    structure = Structure(**data.model_dump(), user_id=user_id)
    with _store_errors(db, "Error creating structure"):
        db.add(structure)
        db.commit()
    db.refresh(structure)
    return structure


def get_structure(db: Session, structure_id: str) -> Optional[Structure]:
    """Get a single structure by ID. Returns None if not found."""
    return db.query(Structure).filter(Structure.id == structure_id).first()


def list_structures(
    db: Session,
    user_id: Optional[str] = None,
    structure_type: Optional[str] = None,
    status: Optional[str] = None,
) -> list[Structure]:
    """List structures with optional owner/type/status filters, newest first."""
    query = db.query(Structure)
    if user_id:
        query = query.filter(Structure.user_id == user_id)
    if structure_type:
        query = query.filter(Structure.type == structure_type)
    if status:
        query = query.filter(Structure.status == status)
    return query.order_by(Structure.created_at.desc()).all()


def update_structure(db: Session, structure_id: str, data: StructureUpdate) -> Optional[Structure]:
    """Update an existing structure. Only non-None fields are updated."""
    structure = get_structure(db, structure_id)
    if not structure:
        return None

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is not None:
            setattr(structure, field, value)

    with _store_errors(db, "Error updating structure"):
        db.commit()
    db.refresh(structure)
    return structure


def delete_structure(db: Session, structure_id: str) -> bool:
    """Delete a structure with its tiers, investors and distributions."""
    structure = get_structure(db, structure_id)
    if not structure:
        return False
    with _store_errors(db, "Error deleting structure"):
        db.delete(structure)
        db.commit()
    return True


# ---------------------------------------------------------------------------
# STRUCTURE INVESTOR CRUD
# ---------------------------------------------------------------------------

def add_structure_investor(
    db: Session, structure_id: str, data: StructureInvestorCreate
) -> StructureInvestor:
    """
    Link an investor to a structure.

    Raises:
        StoreError: If the investor is already linked (unique constraint)
    """
    investor = StructureInvestor(structure_id=structure_id, **data.model_dump())
    with _store_errors(db, "Error creating structure investor"):
        db.add(investor)
        db.commit()
    db.refresh(investor)
    return investor


def get_structure_investor(db: Session, investor_id: str) -> Optional[StructureInvestor]:
    return db.query(StructureInvestor).filter(StructureInvestor.id == investor_id).first()


def list_structure_investors(db: Session, structure_id: str) -> list[StructureInvestor]:
    """All investors of a structure, in the order they joined."""
    return (
        db.query(StructureInvestor)
        .filter(StructureInvestor.structure_id == structure_id)
        .order_by(StructureInvestor.created_at, StructureInvestor.id)
        .all()
    )


def update_structure_investor(
    db: Session, investor_id: str, data: StructureInvestorUpdate
) -> Optional[StructureInvestor]:
    investor = get_structure_investor(db, investor_id)
    if not investor:
        return None
    _apply_changes(
        investor, data.model_dump(exclude_unset=True),
        non_null={"ownership_percent", "fee_discount", "vat_exempt", "status"},
    )
    with _store_errors(db, "Error updating structure investor"):
        db.commit()
    db.refresh(investor)
    return investor


def delete_structure_investor(db: Session, investor_id: str) -> bool:
    investor = get_structure_investor(db, investor_id)
    if not investor:
        return False
    with _store_errors(db, "Error deleting structure investor"):
        db.delete(investor)
        db.commit()
    return True


def get_total_commitment(db: Session, structure_id: str) -> float:
    """Sum of commitments across a structure's investors. NULL counts as 0."""
    with _store_errors(db, "Error calculating total commitment"):
        total = (
            db.query(func.coalesce(func.sum(StructureInvestor.commitment), 0.0))
            .filter(StructureInvestor.structure_id == structure_id)
            .scalar()
        )
    return float(total or 0.0)


def recalculate_ownership(db: Session, structure_id: str) -> list[StructureInvestor]:
    """
    Reset each investor's ownership_percent to its share of total commitment.
    Leaves everything untouched when nothing has been committed.
    """
    investors = list_structure_investors(db, structure_id)
    ownership = ownership_from_commitments({inv.id: inv.commitment for inv in investors})
    if not ownership:
        return investors

    for investor in investors:
        investor.ownership_percent = ownership[investor.id]
    with _store_errors(db, "Error recalculating ownership"):
        db.commit()
    for investor in investors:
        db.refresh(investor)
    return investors


# ---------------------------------------------------------------------------
# WATERFALL TIER CRUD
# ---------------------------------------------------------------------------

def create_tier(db: Session, data: WaterfallTierCreate, user_id: str) -> WaterfallTier:
    """Insert a single tier. Validation is the caller's job (see engines.tiers)."""
    tier = WaterfallTier(**data.model_dump(), user_id=user_id)
    with _store_errors(db, "Error creating waterfall tier"):
        db.add(tier)
        db.commit()
    db.refresh(tier)
    return tier


def get_tier(db: Session, tier_id: str) -> Optional[WaterfallTier]:
    """Get a tier by ID. Returns None if not found."""
    with _store_errors(db, "Error finding waterfall tier"):
        return db.query(WaterfallTier).filter(WaterfallTier.id == tier_id).first()


def list_tiers(
    db: Session,
    structure_id: Optional[str] = None,
    user_id: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> list[WaterfallTier]:
    """List tiers with optional filters, in payout order."""
    query = db.query(WaterfallTier)
    if structure_id:
        query = query.filter(WaterfallTier.structure_id == structure_id)
    if user_id:
        query = query.filter(WaterfallTier.user_id == user_id)
    if is_active is not None:
        query = query.filter(WaterfallTier.is_active == is_active)
    with _store_errors(db, "Error finding waterfall tiers"):
        return query.order_by(WaterfallTier.tier_number, WaterfallTier.created_at).all()


def list_active_tiers(db: Session, structure_id: str) -> list[WaterfallTier]:
    return list_tiers(db, structure_id=structure_id, is_active=True)


def update_tier(db: Session, tier_id: str, data: WaterfallTierUpdate) -> WaterfallTier:
    """
    Apply the supplied fields to an existing tier.

    Raises:
        NotFound: If no tier has this id
        StoreError: If the write is rejected
    """
    tier = get_tier(db, tier_id)
    if not tier:
        raise NotFound("Waterfall tier not found")

    _apply_changes(tier, data.model_dump(exclude_unset=True), non_null=_NON_NULL_TIER_FIELDS)
    with _store_errors(db, "Error updating waterfall tier"):
        db.commit()
    db.refresh(tier)
    return tier


def delete_tier(db: Session, tier_id: str) -> bool:
    """Hard-delete a tier (admin only; normal redefinition deactivates)."""
    tier = get_tier(db, tier_id)
    if not tier:
        return False
    with _store_errors(db, "Error deleting waterfall tier"):
        db.delete(tier)
        db.commit()
    return True


def deactivate_all_tiers(db: Session, structure_id: str) -> list[WaterfallTier]:
    """Mark every tier of a structure inactive. Rows are kept for audit."""
    with _store_errors(db, "Error deactivating tiers"):
        tiers = (
            db.query(WaterfallTier)
            .filter(WaterfallTier.structure_id == structure_id)
            .order_by(WaterfallTier.tier_number)
            .all()
        )
        for tier in tiers:
            tier.is_active = False
        db.commit()
    logger.info("Deactivated %d tiers for structure %s", len(tiers), structure_id)
    return tiers


def create_default_tiers(
    db: Session,
    structure_id: str,
    hurdle_rate_percent: float,
    carry_percent: float,
    user_id: str,
) -> list[WaterfallTier]:
    """
    Create the canonical four-tier LP/GP waterfall for a structure.

    Args:
        db: Database session
        structure_id: Owning structure
        hurdle_rate_percent: Tier 2 threshold IRR (e.g. 8)
        carry_percent: Tier 4 GP share (e.g. 20)
        user_id: Creator

    Returns:
        The four tiers, in tier-number order

    Raises:
        ValidationError: If carry is outside [0, 100] or the hurdle is negative
        PreconditionFailed: If the structure already has tiers (active or not)
        BatchStoreError: If an insert fails; earlier tiers stay committed
    """
    if not 0 <= carry_percent <= 100:
        raise ValidationError("Carry percent must be between 0 and 100")
    if hurdle_rate_percent < 0:
        raise ValidationError("Hurdle rate must not be negative")

    with _store_errors(db, "Error finding waterfall tiers"):
        existing = (
            db.query(func.count(WaterfallTier.id))
            .filter(WaterfallTier.structure_id == structure_id)
            .scalar()
        )
    if existing:
        logger.warning("Default tiers refused for structure %s: %d tiers exist", structure_id, existing)
        raise PreconditionFailed("Waterfall tiers already exist for this structure")

    logger.info("Creating default waterfall for structure %s", structure_id)

    created: list[WaterfallTier] = []
    for index, template in enumerate(default_tier_templates(hurdle_rate_percent, carry_percent)):
        tier = WaterfallTier(
            structure_id=structure_id,
            user_id=user_id,
            is_active=True,
            **template,
        )
        try:
            db.add(tier)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "Default tier %d failed for structure %s after %d inserts: %s",
                template["tier_number"], structure_id, len(created), e,
            )
            raise BatchStoreError(f"Error creating waterfall tier: {e}").attach(created, index) from e
        db.refresh(tier)
        created.append(tier)

    logger.info(
        "Created default waterfall for structure %s (hurdle=%s%%, carry=%s%%)",
        structure_id, hurdle_rate_percent, carry_percent,
    )
    return created


def bulk_update_tiers(
    db: Session,
    structure_id: str,
    edits: list[Union[TierEdit, Mapping]],
    user_id: str,
) -> list[WaterfallTier]:
    """
    Apply tier edits in order: an edit with an id updates that tier, an
    edit without one creates a new tier on the structure.

    Each edit is committed on its own. The first failure stops the batch
    and raises a BatchError carrying the tiers already written
    (`completed`) and the position of the failing edit (`failed_index`).
    Tiers are returned in edit order, neither renumbered nor deduplicated.

    Raises:
        BatchNotFound: An edit references an unknown tier id
        BatchValidationError: An edit is malformed, or a create edit lacks
            tierNumber or a share percent
        BatchStoreError: The store rejected a read or write
    """
    results: list[WaterfallTier] = []
    logger.info("Bulk tier update for structure %s: %d edits", structure_id, len(edits))

    for index, raw in enumerate(edits):
        try:
            edit = raw if isinstance(raw, TierEdit) else TierEdit.model_validate(raw)
        except PydanticValidationError as e:
            messages = [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            ]
            logger.warning("Bulk edit %d rejected for structure %s: %s", index, structure_id, messages)
            raise BatchValidationError("Invalid tier edit", errors=messages).attach(results, index) from e
        changes = edit.model_dump(exclude_unset=True, exclude={"id"})

        if edit.id:
            try:
                tier = db.query(WaterfallTier).filter(WaterfallTier.id == edit.id).first()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Bulk edit %d lookup failed for structure %s: %s", index, structure_id, e)
                raise BatchStoreError(f"Error finding waterfall tier: {e}").attach(results, index) from e
            if tier is None:
                logger.warning("Bulk edit %d: tier %s not found", index, edit.id)
                raise BatchNotFound("Waterfall tier not found").attach(results, index)
            _apply_changes(tier, changes, non_null=_NON_NULL_TIER_FIELDS)
            context = "Error updating waterfall tier"
        else:
            missing = None
            if edit.tier_number is None:
                missing = "tierNumber is required for new tiers"
            elif edit.lp_share_percent is None or edit.gp_share_percent is None:
                missing = "lpSharePercent and gpSharePercent are required for new tiers"
            if missing:
                logger.warning("Bulk edit %d rejected for structure %s: %s", index, structure_id, missing)
                raise BatchValidationError(missing).attach(results, index)
            if changes.get("is_active") is None:
                changes["is_active"] = True
            tier = WaterfallTier(structure_id=structure_id, user_id=user_id, **changes)
            db.add(tier)
            context = "Error creating waterfall tier"

        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Bulk edit %d failed for structure %s: %s", index, structure_id, e)
            raise BatchStoreError(f"{context}: {e}").attach(results, index) from e
        db.refresh(tier)
        results.append(tier)

    logger.info("Bulk tier update for structure %s applied %d edits", structure_id, len(results))
    return results


def get_waterfall_summary(db: Session, structure_id: str) -> dict:
    """Compact description of a structure's active waterfall."""
    tiers = list_active_tiers(db, structure_id)
    return {
        "structure_id": structure_id,
        "total_tiers": len(tiers),
        "tiers": [
            {
                "tier_number": t.tier_number,
                "tier_name": t.tier_name,
                "lp_share": t.lp_share_percent,
                "gp_share": t.gp_share_percent,
                "threshold": describe_threshold(t.threshold_irr, t.threshold_amount),
            }
            for t in tiers
        ],
    }


# ---------------------------------------------------------------------------
# DISTRIBUTION CRUD
# ---------------------------------------------------------------------------

def create_distribution(db: Session, data: DistributionCreate, user_id: str) -> Distribution:
    distribution = Distribution(**data.model_dump(), user_id=user_id)
    with _store_errors(db, "Error creating distribution"):
        db.add(distribution)
        db.commit()
    db.refresh(distribution)
    return distribution


def get_distribution(db: Session, distribution_id: str) -> Optional[Distribution]:
    """Get a distribution by ID. Returns None if not found."""
    return db.query(Distribution).filter(Distribution.id == distribution_id).first()


def list_distributions(db: Session, structure_id: Optional[str] = None) -> list[Distribution]:
    """List distributions, optionally for one structure, newest date first."""
    query = db.query(Distribution)
    if structure_id:
        query = query.filter(Distribution.structure_id == structure_id)
    return query.order_by(Distribution.distribution_date.desc(), Distribution.created_at.desc()).all()


def delete_distribution(db: Session, distribution_id: str) -> bool:
    distribution = get_distribution(db, distribution_id)
    if not distribution:
        return False
    with _store_errors(db, "Error deleting distribution"):
        db.delete(distribution)
        db.commit()
    return True


def apply_waterfall(db: Session, distribution_id: str) -> dict:
    """
    Run the structure's active waterfall over a distribution and store the
    per-tier amounts and LP/GP totals on it.

    Raises:
        NotFound: Unknown distribution
        PreconditionFailed: Waterfall already applied, or no active tiers
    """
    distribution = get_distribution(db, distribution_id)
    if not distribution:
        raise NotFound("Distribution not found")
    if distribution.waterfall_applied:
        raise PreconditionFailed("Waterfall already applied to this distribution")

    tiers = list_active_tiers(db, distribution.structure_id)
    if not tiers:
        raise PreconditionFailed("No active waterfall tiers for this structure")

    result = compute_waterfall(distribution.total_amount, tiers)
    if result.skipped_tiers:
        logger.warning(
            "Distribution %s: ignoring tiers numbered outside 1-4: %s",
            distribution_id, result.skipped_tiers,
        )
    distribution.waterfall_applied = True
    distribution.tier1_amount = result.tier_amounts.get(1, 0.0)
    distribution.tier2_amount = result.tier_amounts.get(2, 0.0)
    distribution.tier3_amount = result.tier_amounts.get(3, 0.0)
    distribution.tier4_amount = result.tier_amounts.get(4, 0.0)
    distribution.lp_total_amount = result.lp_total
    distribution.gp_total_amount = result.gp_total
    with _store_errors(db, "Error applying waterfall"):
        db.commit()
    db.refresh(distribution)

    if result.remaining > 0:
        logger.warning(
            "Distribution %s: %.2f left undistributed (structure has no tier 4)",
            distribution_id, result.remaining,
        )

    return {
        "distribution_id": distribution.id,
        "total_amount": distribution.total_amount,
        "waterfall_applied": True,
        "tiers": {
            "tier1": distribution.tier1_amount,
            "tier2": distribution.tier2_amount,
            "tier3": distribution.tier3_amount,
            "tier4": distribution.tier4_amount,
        },
        "splits": {
            "lp_total": distribution.lp_total_amount,
            "gp_total": distribution.gp_total_amount,
        },
    }


def create_allocations(db: Session, distribution_id: str) -> list[DistributionAllocation]:
    """
    Split a distribution's LP pool across the structure's investors pro
    rata to ownership_percent. Replaces any earlier allocations.

    Raises:
        NotFound: Unknown distribution
        PreconditionFailed: Waterfall not applied yet
    """
    distribution = get_distribution(db, distribution_id)
    if not distribution:
        raise NotFound("Distribution not found")
    if not distribution.waterfall_applied:
        raise PreconditionFailed("Waterfall has not been applied to this distribution")

    investors = list_structure_investors(db, distribution.structure_id)
    shares = allocate_lp_pool(
        distribution.lp_total_amount,
        {inv.user_id: inv.ownership_percent for inv in investors},
    )

    with _store_errors(db, "Error creating allocations"):
        db.query(DistributionAllocation).filter(
            DistributionAllocation.distribution_id == distribution_id
        ).delete(synchronize_session="fetch")
        allocations = [
            DistributionAllocation(
                distribution_id=distribution_id,
                investor_id=investor_id,
                allocated_amount=amount,
                paid_amount=0.0,
                status="Pending",
                payment_date=distribution.distribution_date,
            )
            for investor_id, amount in shares.items()
        ]
        db.add_all(allocations)
        db.commit()
    for allocation in allocations:
        db.refresh(allocation)
    return allocations


def list_allocations(db: Session, distribution_id: str) -> list[DistributionAllocation]:
    return (
        db.query(DistributionAllocation)
        .filter(DistributionAllocation.distribution_id == distribution_id)
        .order_by(DistributionAllocation.investor_id)
        .all()
    )
