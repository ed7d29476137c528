"""Business logic services for the lab order results service."""

from labflow.services.auth_service import ActingContext
from labflow.services.audit_service import AuditService
from labflow.services.catalog_service import CatalogService
from labflow.services.order_repository import OrderRepository
from labflow.services.approval_service import ApprovalService
from labflow.services.order_service import OrderService

__all__ = [
    "ActingContext",
    "AuditService",
    "CatalogService",
    "OrderRepository",
    "ApprovalService",
    "OrderService",
]
