"""Database models for the lab order results service."""

from labflow.models.audit_log import AuditLog
from labflow.models.catalog import Area, Method, SampleType, Analysis, Component, AnalysisComponent
from labflow.models.order import (
    OrderState,
    Order,
    OrderAnalysis,
    OrderAnalysisComponent,
    ComponentResult,
)

__all__ = [
    "AuditLog",
    "Area",
    "Method",
    "SampleType",
    "Analysis",
    "Component",
    "AnalysisComponent",
    "OrderState",
    "Order",
    "OrderAnalysis",
    "OrderAnalysisComponent",
    "ComponentResult",
]
