"""
FundHub Pydantic Schemas

Defines request/response models for the FastAPI REST API. The API speaks
camelCase (structureId, lpSharePercent, ...); Python attributes and table
columns stay snake_case. CamelModel bridges the two: it accepts either
spelling on input and serializes by alias on output.

Naming convention:
    - XxxCreate: request body for creating Xxx
    - XxxUpdate: request body for updating Xxx (all fields optional)
    - XxxResponse: response body for Xxx
"""

from datetime import datetime, date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

STRUCTURE_TYPES = ["Fund", "SA/LLC", "Fideicomiso", "Private Debt"]
WATERFALL_TYPES = ["American", "European"]
DISTRIBUTION_STATUSES = ["Draft", "Pending", "Paid"]


class CamelModel(BaseModel):
    """Base for every API schema: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# STRUCTURE SCHEMAS
# ---------------------------------------------------------------------------

class StructureCreate(CamelModel):
    """Request body for creating a structure."""
    name: str = Field(..., min_length=1, max_length=255)
    type: str
    description: Optional[str] = None
    status: str = "Active"
    total_commitment: float = Field(0.0, ge=0)
    management_fee: float = Field(2.0, ge=0, le=100)
    carried_interest: float = Field(20.0, ge=0, le=100)
    hurdle_rate: float = Field(8.0, ge=0, le=100)
    waterfall_type: str = "American"
    base_currency: str = Field("USD", max_length=10)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in STRUCTURE_TYPES:
            raise ValueError(f"Invalid type: {v}. Must be one of {STRUCTURE_TYPES}")
        return v

    @field_validator("waterfall_type")
    @classmethod
    def validate_waterfall_type(cls, v):
        if v not in WATERFALL_TYPES:
            raise ValueError(f"Invalid waterfall_type: {v}. Must be one of {WATERFALL_TYPES}")
        return v


class StructureUpdate(CamelModel):
    """Request body for updating a structure. All fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    total_commitment: Optional[float] = Field(None, ge=0)
    management_fee: Optional[float] = Field(None, ge=0, le=100)
    carried_interest: Optional[float] = Field(None, ge=0, le=100)
    hurdle_rate: Optional[float] = Field(None, ge=0, le=100)
    waterfall_type: Optional[str] = None
    base_currency: Optional[str] = Field(None, max_length=10)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v is not None and v not in STRUCTURE_TYPES:
            raise ValueError(f"Invalid type: {v}. Must be one of {STRUCTURE_TYPES}")
        return v

    @field_validator("waterfall_type")
    @classmethod
    def validate_waterfall_type(cls, v):
        if v is not None and v not in WATERFALL_TYPES:
            raise ValueError(f"Invalid waterfall_type: {v}. Must be one of {WATERFALL_TYPES}")
        return v


class StructureResponse(CamelModel):
    """Response body for a structure."""
    id: str
    name: str
    type: str
    description: Optional[str] = None
    status: str
    total_commitment: float
    management_fee: float
    carried_interest: float
    hurdle_rate: float
    waterfall_type: str
    base_currency: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class StructureInvestorCreate(CamelModel):
    """Request body for adding an investor to a structure."""
    user_id: str = Field(..., min_length=1)
    commitment: float = Field(0.0, ge=0)
    ownership_percent: float = Field(0.0, ge=0, le=100)
    fee_discount: float = Field(0.0, ge=0, le=100)
    vat_exempt: bool = False
    status: str = "Active"


class StructureInvestorUpdate(CamelModel):
    """Request body for updating an investor's terms. All fields optional."""
    commitment: Optional[float] = Field(None, ge=0)
    ownership_percent: Optional[float] = Field(None, ge=0, le=100)
    fee_discount: Optional[float] = Field(None, ge=0, le=100)
    vat_exempt: Optional[bool] = None
    status: Optional[str] = None


class StructureInvestorResponse(CamelModel):
    """Response body for a structure investor."""
    id: str
    structure_id: str
    user_id: str
    commitment: Optional[float] = None
    ownership_percent: float
    fee_discount: float
    vat_exempt: bool
    status: str
    created_at: datetime
    updated_at: datetime


class CommitmentResponse(CamelModel):
    """Aggregate commitment for a structure."""
    structure_id: str
    total_commitment: float
    investor_count: int


# ---------------------------------------------------------------------------
# WATERFALL TIER SCHEMAS
# ---------------------------------------------------------------------------

class WaterfallTierCreate(CamelModel):
    """
    Request body for creating a single tier. Numeric invariants (share sum,
    ranges) are checked by engines.tiers.validate_tier so the caller gets
    every violation at once instead of the first schema error.
    """
    structure_id: str = Field(..., min_length=1)
    tier_number: int
    tier_name: Optional[str] = Field(None, max_length=100)
    lp_share_percent: float
    gp_share_percent: float
    threshold_amount: Optional[float] = None
    threshold_irr: Optional[float] = None
    description: Optional[str] = None
    is_active: bool = True


class WaterfallTierUpdate(CamelModel):
    """Request body for updating a tier. Only supplied fields change."""
    tier_number: Optional[int] = None
    tier_name: Optional[str] = Field(None, max_length=100)
    lp_share_percent: Optional[float] = None
    gp_share_percent: Optional[float] = None
    threshold_amount: Optional[float] = None
    threshold_irr: Optional[float] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TierEdit(WaterfallTierUpdate):
    """One entry of a bulk edit: with an id it updates, without one it creates."""
    id: Optional[str] = None


class BulkTierRequest(CamelModel):
    """Request body for the bulk tier reconciler."""
    tiers: list[TierEdit]


class DefaultTiersRequest(CamelModel):
    """
    Request body for the default tier factory. Omitted values fall back
    to the structure's hurdle_rate / carried_interest.
    """
    hurdle_rate_percent: Optional[float] = Field(None, ge=0, le=100)
    carry_percent: Optional[float] = Field(None, ge=0, le=100)


class WaterfallTierResponse(CamelModel):
    """Response body for a waterfall tier."""
    id: str
    structure_id: str
    tier_number: int
    tier_name: Optional[str] = None
    lp_share_percent: float
    gp_share_percent: float
    threshold_amount: Optional[float] = None
    threshold_irr: Optional[float] = None
    description: Optional[str] = None
    is_active: bool
    user_id: str
    created_at: datetime
    updated_at: datetime


class TierValidationResponse(CamelModel):
    """Result of running the tier validator."""
    is_valid: bool
    errors: list[str]


class TierSummaryRow(CamelModel):
    tier_number: int
    tier_name: Optional[str] = None
    lp_share: float
    gp_share: float
    threshold: str


class WaterfallSummaryResponse(CamelModel):
    """Compact view of a structure's active waterfall."""
    structure_id: str
    total_tiers: int
    tiers: list[TierSummaryRow]


# ---------------------------------------------------------------------------
# DISTRIBUTION SCHEMAS
# ---------------------------------------------------------------------------

class DistributionCreate(CamelModel):
    """Request body for creating a distribution."""
    structure_id: str = Field(..., min_length=1)
    distribution_number: str = Field(..., min_length=1, max_length=50)
    distribution_date: date
    total_amount: float = Field(..., gt=0)
    status: str = "Draft"
    source: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in DISTRIBUTION_STATUSES:
            raise ValueError(f"Invalid status: {v}. Must be one of {DISTRIBUTION_STATUSES}")
        return v


class DistributionResponse(CamelModel):
    """Response body for a distribution."""
    id: str
    structure_id: str
    distribution_number: str
    distribution_date: date
    total_amount: float
    status: str
    source: Optional[str] = None
    notes: Optional[str] = None
    waterfall_applied: bool
    tier1_amount: float
    tier2_amount: float
    tier3_amount: float
    tier4_amount: float
    lp_total_amount: float
    gp_total_amount: float
    user_id: str
    created_at: datetime
    updated_at: datetime


class TierAmounts(CamelModel):
    tier1: float
    tier2: float
    tier3: float
    tier4: float


class WaterfallSplits(CamelModel):
    lp_total: float
    gp_total: float


class WaterfallApplicationResponse(CamelModel):
    """Result of applying the waterfall to a distribution."""
    distribution_id: str
    total_amount: float
    waterfall_applied: bool
    tiers: TierAmounts
    splits: WaterfallSplits


class AllocationResponse(CamelModel):
    """Response body for one investor's distribution allocation."""
    id: str
    distribution_id: str
    investor_id: str
    allocated_amount: float
    paid_amount: float
    status: str
    payment_date: Optional[date] = None
