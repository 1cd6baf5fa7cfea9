"""
FundHub ORM Models

Defines all database tables using SQLAlchemy 2.0 mapped_column style.
Column names are snake_case; the camelCase API shape lives in schemas.py.

Tables:
    - structures: Investment vehicles (funds, LLCs, trusts, private debt)
    - structure_investors: Investor commitments and ownership per structure
    - waterfall_tiers: Ordered LP/GP split rules per structure
    - distributions: Cash distributions per structure, with waterfall results
    - distribution_allocations: Per-investor share of a distribution's LP pool
"""

import uuid
from datetime import datetime, date
from typing import Optional

from sqlalchemy import (
    Integer, Float, Text, String, Boolean, Date, DateTime, ForeignKey,
    UniqueConstraint, Index, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# STRUCTURES
# ---------------------------------------------------------------------------

class Structure(Base):
    """
    An investment vehicle. Owns a waterfall tier set, its investors
    and its distributions; deleting it removes all three.
    """
    __tablename__ = "structures"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Active")
    total_commitment: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    management_fee: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    carried_interest: Mapped[float] = mapped_column(Float, nullable=False, default=20.0)
    hurdle_rate: Mapped[float] = mapped_column(Float, nullable=False, default=8.0)
    waterfall_type: Mapped[str] = mapped_column(String(20), nullable=False, default="American")
    base_currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    tiers: Mapped[list["WaterfallTier"]] = relationship(
        "WaterfallTier", back_populates="structure", cascade="all, delete-orphan",
    )
    investors: Mapped[list["StructureInvestor"]] = relationship(
        "StructureInvestor", back_populates="structure", cascade="all, delete-orphan",
    )
    distributions: Mapped[list["Distribution"]] = relationship(
        "Distribution", back_populates="structure", cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Structure(id={self.id}, name='{self.name}', type={self.type})>"


class StructureInvestor(Base):
    """Junction between an investor user and a structure: commitment and ownership."""
    __tablename__ = "structure_investors"
    __table_args__ = (
        UniqueConstraint("structure_id", "user_id", name="uq_structure_investor"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    structure_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("structures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    commitment: Mapped[Optional[float]] = mapped_column(Float, nullable=True, default=0.0)
    ownership_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    fee_discount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    vat_exempt: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Active")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    structure: Mapped["Structure"] = relationship("Structure", back_populates="investors")

    def __repr__(self) -> str:
        return (
            f"<StructureInvestor(id={self.id}, user_id={self.user_id}, "
            f"commitment={self.commitment})>"
        )


# ---------------------------------------------------------------------------
# WATERFALL
# ---------------------------------------------------------------------------

class WaterfallTier(Base):
    """
    One tier of a capital-distribution waterfall for a structure.

    tier_number (1-4) fixes payout priority. Redefining a waterfall
    deactivates the old rows instead of deleting them, so only one
    active row per (structure_id, tier_number) may exist.
    """
    __tablename__ = "waterfall_tiers"
    __table_args__ = (
        Index(
            "uq_waterfall_tiers_active_number",
            "structure_id", "tier_number",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active = true"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    structure_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("structures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tier_number: Mapped[int] = mapped_column(Integer, nullable=False)
    tier_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    lp_share_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    gp_share_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    threshold_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    threshold_irr: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    structure: Mapped["Structure"] = relationship("Structure", back_populates="tiers")

    def __repr__(self) -> str:
        return (
            f"<WaterfallTier(id={self.id}, tier={self.tier_number}, "
            f"LP={self.lp_share_percent}, GP={self.gp_share_percent})>"
        )


# ---------------------------------------------------------------------------
# DISTRIBUTIONS
# ---------------------------------------------------------------------------

class Distribution(Base):
    """
    A cash distribution for a structure. Tier amounts and LP/GP totals
    are populated once the waterfall has been applied.
    """
    __tablename__ = "distributions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    structure_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("structures.id", ondelete="CASCADE"), nullable=False, index=True
    )
    distribution_number: Mapped[str] = mapped_column(String(50), nullable=False)
    distribution_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Draft")
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Waterfall results
    waterfall_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tier1_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tier2_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tier3_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tier4_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    lp_total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    gp_total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    structure: Mapped["Structure"] = relationship("Structure", back_populates="distributions")
    allocations: Mapped[list["DistributionAllocation"]] = relationship(
        "DistributionAllocation", back_populates="distribution",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<Distribution(id={self.id}, number='{self.distribution_number}', "
            f"amount={self.total_amount})>"
        )


class DistributionAllocation(Base):
    """One investor's share of a distribution's LP pool."""
    __tablename__ = "distribution_allocations"
    __table_args__ = (
        UniqueConstraint("distribution_id", "investor_id", name="uq_distribution_investor"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    distribution_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("distributions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    investor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    allocated_amount: Mapped[float] = mapped_column(Float, nullable=False)
    paid_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Pending")
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    distribution: Mapped["Distribution"] = relationship(
        "Distribution", back_populates="allocations"
    )

    def __repr__(self) -> str:
        return (
            f"<DistributionAllocation(distribution_id={self.distribution_id}, "
            f"investor_id={self.investor_id}, amount={self.allocated_amount})>"
        )
