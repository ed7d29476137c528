"""Order intake and print dispatch API endpoints."""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
import logging

from labflow.database import get_db
from labflow.schemas.order import OrderCreate, OrderListResponse, OrderListItem, AlertCountsResponse
from labflow.schemas.results import OrderSnapshot, ApprovedReport
from labflow.services.approval_service import ApprovalService
from labflow.services.auth_service import get_acting_context
from labflow.services.order_service import OrderService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=OrderSnapshot, status_code=status.HTTP_201_CREATED)
async def create_order(
    body: OrderCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    """Register a new order."""
    context = get_acting_context(request)
    snapshot = OrderService(db).create_order(body, context)
    logger.info(f"Order {snapshot.attention_number} created by {context.user_id}")
    return snapshot


@router.get("/alert-counts", response_model=AlertCountsResponse)
async def get_alert_counts(
    request: Request,
    db: Session = Depends(get_db)
):
    """Counts for the header bell: pending approval and approved awaiting print."""
    context = get_acting_context(request)
    return OrderService(db).alert_counts(context)


@router.get("/pending-print", response_model=OrderListResponse)
async def list_pending_print(
    request: Request,
    db: Session = Depends(get_db)
):
    """Approved orders not yet printed."""
    context = get_acting_context(request)
    total, orders = OrderService(db).approved_pending_print(context)
    return OrderListResponse(total=total, orders=[OrderListItem.model_validate(o) for o in orders])


@router.get("/{order_id}", response_model=OrderSnapshot)
async def get_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    context = get_acting_context(request)
    return ApprovalService(db).get_order_snapshot(order_id, context)


@router.post("/{order_id}/receive-sample", response_model=OrderSnapshot)
async def receive_sample(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Record that the order's sample reached the lab."""
    context = get_acting_context(request)
    return OrderService(db).receive_sample(order_id, context)


@router.get("/{order_id}/approved-snapshot", response_model=ApprovedReport)
async def get_approved_snapshot(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Read-only snapshot of an approved order for the print/notification dispatcher.

    Dates are also rendered in the lab's local timezone.
    """
    context = get_acting_context(request)
    return ApprovalService(db).get_approved_snapshot(order_id, context)


@router.post("/{order_id}/mark-printed", response_model=OrderSnapshot)
async def mark_printed(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Called by the dispatcher after a successful render/print."""
    context = get_acting_context(request)
    return ApprovalService(db).mark_printed(order_id, context)
