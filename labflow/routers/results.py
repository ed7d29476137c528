"""Result entry and approval API endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import List
import logging

from labflow.database import get_db
from labflow.schemas.order import OrderListResponse, OrderListItem
from labflow.schemas.results import (
    BulkResultsRequest,
    ConfirmApprovalRequest,
    CriticalAlertResponse,
    ApprovalCheckResponse,
    OrderSnapshot,
)
from labflow.services.approval_service import ApprovalService
from labflow.services.auth_service import get_acting_context
from labflow.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


def _alert_responses(alerts) -> List[CriticalAlertResponse]:
    return [CriticalAlertResponse(**a.to_dict()) for a in alerts]


# Work lists
@router.get("/pending", response_model=OrderListResponse)
async def list_pending_results(
    request: Request,
    db: Session = Depends(get_db)
):
    """Registered orders whose sample has been received and that still need results."""
    context = get_acting_context(request)
    total, orders = OrderService(db).pending_results(context)
    return OrderListResponse(total=total, orders=[OrderListItem.model_validate(o) for o in orders])


@router.get("/pending-approval", response_model=OrderListResponse)
async def list_pending_approval(
    request: Request,
    db: Session = Depends(get_db)
):
    """Orders with results waiting for a biologist's approval."""
    context = get_acting_context(request)
    total, orders = OrderService(db).pending_approval(context)
    return OrderListResponse(total=total, orders=[OrderListItem.model_validate(o) for o in orders])


# Single order
@router.get("/orders/{order_id}", response_model=OrderSnapshot)
async def get_order_results(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Order with its analyses, components, current values and progress."""
    context = get_acting_context(request)
    return ApprovalService(db).get_order_snapshot(order_id, context)


@router.get("/orders/{order_id}/alerts", response_model=List[CriticalAlertResponse])
async def get_order_alerts(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Critical values of the order's current results."""
    context = get_acting_context(request)
    alerts = ApprovalService(db).evaluate_order_alerts(order_id, context)
    return _alert_responses(alerts)


@router.post("/orders/{order_id}/save", response_model=OrderSnapshot)
async def save_results(
    order_id: int,
    body: BulkResultsRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Save a batch of component results.

    Blank values are ignored. The batch is rejected whole (422) if any entry
    does not belong to the order.
    """
    context = get_acting_context(request)
    snapshot = ApprovalService(db).submit_bulk_results(order_id, body.results, context)
    logger.info(f"Results saved for order {order_id} by {context.user_id}")
    return snapshot


# Two-step approval
@router.post("/orders/{order_id}/approve", response_model=ApprovalCheckResponse)
async def approve_results(
    order_id: int,
    body: BulkResultsRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    First approval call.

    Saves any submitted results and returns the critical values the operator
    must acknowledge through ``/confirm`` (or reject through ``/decline``).
    The order is not approved by this call.
    """
    context = get_acting_context(request)
    check = ApprovalService(db).approve_order(order_id, body.results, context)
    return ApprovalCheckResponse(
        order_id=check.order_id,
        alerts=_alert_responses(check.alerts),
        requires_confirmation=check.requires_confirmation
    )


@router.post("/orders/{order_id}/confirm", response_model=OrderSnapshot)
async def confirm_approval(
    order_id: int,
    body: ConfirmApprovalRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Second approval call: approve with the listed critical values acknowledged."""
    context = get_acting_context(request)
    return ApprovalService(db).confirm_approval(order_id, context, body.acknowledged_alerts)


@router.post("/orders/{order_id}/decline")
async def decline_approval(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Operator declined the critical values; answers 409 APPROVAL_DECLINED, results are kept."""
    context = get_acting_context(request)
    ApprovalService(db).decline_approval(order_id, context)
