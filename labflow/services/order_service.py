"""Order intake, sample reception and work lists."""

from typing import List, Tuple
from sqlalchemy.orm import Session
import logging

from labflow.config import (
    settings, PERM_ORDERS_CREATE, PERM_ORDERS_READ, PERM_ORDERS_PRINT, PERM_RESULTS_READ, PERM_RESULTS_UPDATE
)
from labflow.exceptions import StateViolation
from labflow.models.order import Order, OrderState
from labflow.schemas.order import OrderCreate, AlertCountsResponse, OrderListItem
from labflow.schemas.results import OrderSnapshot
from labflow.services.audit_service import AuditService, ACTION_CREATE_ORDER, ACTION_RECEIVE_SAMPLE
from labflow.services.auth_service import ActingContext
from labflow.services.catalog_service import CatalogService
from labflow.services.order_repository import OrderRepository

logger = logging.getLogger(__name__)


class OrderService:
    """Front-desk side of the order: registration, reception and queues."""

    def __init__(self, db: Session, audit: AuditService = None):
        self.db = db
        self.repository = OrderRepository(db, CatalogService(db))
        self.audit = audit or AuditService(db)

    def create_order(self, data: OrderCreate, context: ActingContext) -> OrderSnapshot:
        """Register a new order in state registered."""
        context.require(PERM_ORDERS_CREATE)

        try:
            order = self.repository.create_order(
                patient_ref=data.patient_ref,
                site_ref=data.site_ref,
                analyses=[(a.analysis_id, a.price) for a in data.analyses],
                registered_by=context.user_id,
                client_ref=data.client_ref,
                agreement_ref=data.agreement_ref,
                notes=data.notes
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.audit.log_context_action(
            context, ACTION_CREATE_ORDER, order.id,
            details={
                "attention_number": order.attention_number,
                "analyses": [a.analysis_id for a in data.analyses]
            }
        )
        return self.repository.get_order_with_results(order.id)

    def receive_sample(self, order_id: int, context: ActingContext) -> OrderSnapshot:
        """
        Record that the sample of a registered order reached the lab.

        Raises:
            StateViolation: the order is past registration or its sample was already received
        """
        context.require(PERM_RESULTS_UPDATE)
        order = self.repository.get_order(order_id)

        if order.order_state != OrderState.REGISTERED:
            raise StateViolation(
                f"Cannot receive the sample of order {order.attention_number} in state '{order.state}'",
                order_id=order.id, state=order.state
            )
        if order.sample_received_at is not None:
            raise StateViolation(
                f"Sample of order {order.attention_number} was already received",
                order_id=order.id, state=order.state
            )

        try:
            self.repository.mark_sample_received(order, context.user_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Sample of order {order_id} received by {context.user_id}")
        self.audit.log_context_action(context, ACTION_RECEIVE_SAMPLE, order_id)
        return self.repository.get_order_with_results(order_id)

    # Work lists

    def pending_results(self, context: ActingContext) -> Tuple[int, List[Order]]:
        """Registered orders whose sample is in the lab."""
        context.require(PERM_RESULTS_READ)
        return self.repository.list_by_state(
            OrderState.REGISTERED, limit=settings.PENDING_LIST_LIMIT, sample_received=True
        )

    def pending_approval(self, context: ActingContext) -> Tuple[int, List[Order]]:
        context.require(PERM_RESULTS_READ)
        return self.repository.list_by_state(OrderState.HAS_RESULTS, limit=settings.PENDING_LIST_LIMIT)

    def approved_pending_print(self, context: ActingContext) -> Tuple[int, List[Order]]:
        context.require(PERM_ORDERS_PRINT)
        return self.repository.list_by_state(OrderState.APPROVED, limit=settings.PENDING_LIST_LIMIT)

    def alert_counts(self, context: ActingContext) -> AlertCountsResponse:
        """Counts for the header bell."""
        context.require(PERM_ORDERS_READ)
        total_approved, approved = self.repository.list_by_state(
            OrderState.APPROVED, limit=settings.PENDING_LIST_LIMIT
        )
        return AlertCountsResponse(
            pending_approval=self.repository.count_by_state(OrderState.HAS_RESULTS),
            approved_pending_print=total_approved,
            approved_pending_print_detail=[OrderListItem.model_validate(o) for o in approved]
        )
