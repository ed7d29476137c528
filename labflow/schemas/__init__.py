"""Pydantic schemas for request/response validation."""

from labflow.schemas.results import (
    BulkResultEntry,
    BulkResultsRequest,
    AlertAcknowledgement,
    ConfirmApprovalRequest,
    CriticalAlertResponse,
    ApprovalCheckResponse,
    OrderSnapshot,
    ApprovedReport,
)
from labflow.schemas.order import OrderCreate, OrderAnalysisCreate, OrderListResponse, AlertCountsResponse

__all__ = [
    "BulkResultEntry",
    "BulkResultsRequest",
    "AlertAcknowledgement",
    "ConfirmApprovalRequest",
    "CriticalAlertResponse",
    "ApprovalCheckResponse",
    "OrderSnapshot",
    "ApprovedReport",
    "OrderCreate",
    "OrderAnalysisCreate",
    "OrderListResponse",
    "AlertCountsResponse",
]
