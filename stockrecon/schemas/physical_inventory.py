"""Physical Inventory Schemas"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Union
from datetime import datetime, date
from enum import Enum


class InventoryStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED_FOR_CORRECTION = "returned_for_correction"


# Rates may arrive as text from legacy clients; the service sanitizes them
RateInput = Optional[Union[float, str]]


class PhysicalInventoryItemBase(BaseModel):
    product_id: int
    current_quantity: float = Field(default=0, description="System quantity when counted")
    counted_quantity: float = Field(..., ge=0, description="Physical count")
    unit_cost: float = Field(default=0, ge=0)
    unit_average_cost: Optional[float] = Field(None, ge=0)
    exchange_rate: RateInput = None
    batch_number: Optional[str] = Field(None, max_length=100)
    expiry_date: Optional[str] = Field(None, description="ISO date; invalid values are ignored")
    serial_numbers: List[str] = Field(default_factory=list)
    adjustment_in_reason_id: Optional[int] = None
    adjustment_out_reason_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("expiry_date", mode="before")
    @classmethod
    def stringify_expiry(cls, v):
        if isinstance(v, (date, datetime)):
            return v.isoformat()
        return v


class PhysicalInventoryItemCreate(PhysicalInventoryItemBase):
    pass


class PhysicalInventoryItemResponse(BaseModel):
    id: int
    product_id: int
    current_quantity: float
    counted_quantity: float
    unit_cost: float
    unit_average_cost: Optional[float] = None
    exchange_rate: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    serial_numbers: Optional[List[str]] = None
    adjustment_in_reason_id: Optional[int] = None
    adjustment_out_reason_id: Optional[int] = None
    notes: Optional[str] = None
    adjustment_in_quantity: float
    adjustment_out_quantity: float
    delta_quantity: float
    delta_value: float
    new_stock: float
    total_value: float
    equivalent_amount: float

    model_config = ConfigDict(from_attributes=True)


class PhysicalInventoryBase(BaseModel):
    store_id: int
    inventory_date: Optional[date] = None
    currency_id: Optional[int] = None
    exchange_rate: RateInput = None
    inventory_in_account_id: Optional[int] = None
    inventory_in_corresponding_account_id: Optional[int] = None
    inventory_out_account_id: Optional[int] = None
    inventory_out_corresponding_account_id: Optional[int] = None
    adjustment_in_reason_id: Optional[int] = None
    adjustment_out_reason_id: Optional[int] = None
    notes: Optional[str] = None


class PhysicalInventoryCreate(PhysicalInventoryBase):
    items: List[PhysicalInventoryItemCreate] = Field(default_factory=list)


class PhysicalInventoryUpdate(BaseModel):
    store_id: Optional[int] = None
    inventory_date: Optional[date] = None
    currency_id: Optional[int] = None
    exchange_rate: RateInput = None
    inventory_in_account_id: Optional[int] = None
    inventory_in_corresponding_account_id: Optional[int] = None
    inventory_out_account_id: Optional[int] = None
    inventory_out_corresponding_account_id: Optional[int] = None
    adjustment_in_reason_id: Optional[int] = None
    adjustment_out_reason_id: Optional[int] = None
    notes: Optional[str] = None
    items: Optional[List[PhysicalInventoryItemCreate]] = None


class PhysicalInventoryResponse(BaseModel):
    id: int
    reference_number: str
    inventory_date: date
    store_id: int
    status: InventoryStatus
    notes: Optional[str] = None
    currency_id: Optional[int] = None
    exchange_rate: Optional[str] = None
    inventory_in_account_id: Optional[int] = None
    inventory_in_corresponding_account_id: Optional[int] = None
    inventory_out_account_id: Optional[int] = None
    inventory_out_corresponding_account_id: Optional[int] = None
    adjustment_in_reason_id: Optional[int] = None
    adjustment_out_reason_id: Optional[int] = None
    total_items: int = 0
    total_value: float = 0

    total_delta_value: Optional[float] = None
    positive_delta_value: Optional[float] = None
    negative_delta_value: Optional[float] = None
    variance_notes: Optional[str] = None
    variance_accepted_by: Optional[str] = None
    variance_accepted_at: Optional[datetime] = None

    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    returned_by: Optional[str] = None
    returned_at: Optional[datetime] = None
    return_reason: Optional[str] = None

    lines: List[PhysicalInventoryItemResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class PhysicalInventorySummary(BaseModel):
    """List row without lines"""
    id: int
    reference_number: str
    inventory_date: date
    store_id: int
    status: InventoryStatus
    total_items: int = 0
    total_value: float = 0
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Why the document is rejected or returned")


class AcceptVarianceRequest(BaseModel):
    total_delta_value: Optional[float] = None
    positive_delta_value: Optional[float] = None
    negative_delta_value: Optional[float] = None
    notes: Optional[str] = None


class PhysicalInventoryStats(BaseModel):
    total: int = 0
    draft: int = 0
    submitted: int = 0
    approved: int = 0
    rejected: int = 0
    returned_for_correction: int = 0
