"""Order intake and work-list schemas."""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class OrderAnalysisCreate(BaseModel):
    analysis_id: int
    price: Optional[Decimal] = Field(None, ge=0)  # tariff price; catalog base price when omitted


class OrderCreate(BaseModel):
    """Schema for registering an order."""
    patient_ref: int
    site_ref: int
    client_ref: Optional[int] = None
    agreement_ref: Optional[int] = None
    notes: Optional[str] = None
    analyses: List[OrderAnalysisCreate] = Field(..., min_length=1)


class OrderListItem(BaseModel):
    """Order item for work lists."""
    id: int
    attention_number: int
    state: str
    patient_ref: int
    site_ref: int
    registered_at: datetime
    sample_received_at: Optional[datetime] = None
    results_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    total: int
    orders: List[OrderListItem]


class AlertCountsResponse(BaseModel):
    """Counts shown in the header bell."""
    pending_approval: int
    approved_pending_print: int
    approved_pending_print_detail: List[OrderListItem]
