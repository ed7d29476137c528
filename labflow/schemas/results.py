"""Result entry, approval and order snapshot schemas."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class BulkResultEntry(BaseModel):
    """One submitted value for a component of an order analysis."""
    order_analysis_id: int
    component_id: int
    value: Optional[str] = Field("", max_length=500)  # component_results.value is String(500)
    observations: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def none_is_blank(cls, v):
        return "" if v is None else v


class BulkResultsRequest(BaseModel):
    """Request body for saving or approving results."""
    results: List[BulkResultEntry] = []


class AlertAcknowledgement(BaseModel):
    """Operator acknowledgement of one critical value."""
    component_id: int
    order_analysis_id: Optional[int] = None
    kind: str = Field(..., pattern="^(min|max)$")
    value: str  # the value the operator saw
    threshold: float  # the bound the operator saw


class ConfirmApprovalRequest(BaseModel):
    """Second call of the approval protocol."""
    acknowledged_alerts: List[AlertAcknowledgement] = []


class CriticalAlertResponse(BaseModel):
    component_id: int
    component_name: str
    order_analysis_id: Optional[int] = None
    value: str
    kind: str
    threshold: float


class ApprovalCheckResponse(BaseModel):
    """Result of the first approval call."""
    order_id: int
    alerts: List[CriticalAlertResponse]
    requires_confirmation: bool


class ComponentResultView(BaseModel):
    component_id: int
    component_code: str
    component_name: str
    unit: Optional[str] = None
    reference_text: Optional[str] = None
    reference_min: Optional[float] = None
    reference_max: Optional[float] = None
    alert_min: Optional[float] = None
    alert_max: Optional[float] = None
    method_name: Optional[str] = None
    result_id: Optional[int] = None
    value: Optional[str] = None
    observations: Optional[str] = None
    has_result: bool = False
    out_of_range: bool = False


class AnalysisResultsView(BaseModel):
    order_analysis_id: int
    analysis_id: int
    analysis_code: str
    analysis_name: str
    price: Decimal
    components: List[ComponentResultView]


class ProgressView(BaseModel):
    total: int
    completed: int
    percentage: int


class OrderSnapshot(BaseModel):
    """Read-only view of an order with its analyses and current results."""
    id: int
    attention_number: int
    state: str
    patient_ref: int
    site_ref: int
    client_ref: Optional[int] = None
    agreement_ref: Optional[int] = None
    notes: Optional[str] = None
    registered_at: datetime
    registered_by: Optional[str] = None
    sample_received_at: Optional[datetime] = None
    results_at: Optional[datetime] = None
    results_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    printed_at: Optional[datetime] = None
    printed_by: Optional[str] = None
    total: Decimal
    analyses: List[AnalysisResultsView]
    progress: ProgressView


class ApprovedReport(BaseModel):
    """Snapshot handed to the print/notification dispatcher, with lab-local display dates."""
    order: OrderSnapshot
    registered_at_display: Optional[str] = None
    approved_at_display: Optional[str] = None
    printed_at_display: Optional[str] = None
    timezone: str
