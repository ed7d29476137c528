"""Audit logging service for result lifecycle traceability."""

from datetime import datetime
from sqlalchemy.orm import Session
import json
import logging

from labflow.config import settings
from labflow.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

# Actions recorded by the lifecycle
ACTION_SAVE_RESULTS = "SAVE_RESULTS"
ACTION_APPROVAL_CHECK = "APPROVAL_CHECK"
ACTION_APPROVE = "APPROVE"
ACTION_DECLINE_APPROVAL = "DECLINE_APPROVAL"
ACTION_MARK_PRINTED = "MARK_PRINTED"
ACTION_CREATE_ORDER = "CREATE_ORDER"
ACTION_RECEIVE_SAMPLE = "RECEIVE_SAMPLE"


class AuditService:
    """Service for audit logging of order lifecycle actions."""

    def __init__(self, db: Session):
        self.db = db

    def log_action(
        self,
        user_id: str,
        action: str,
        resource_type: str,
        resource_id: str = None,
        user_email: str = None,
        details: dict = None,
        success: bool = True,
        failure_reason: str = None
    ):
        """Log an action for audit trail.

        Runs after the clinical operation has been committed, so a failure
        here is logged and does not undo that operation.
        """
        if not settings.AUDIT_LOG_ENABLED:
            return

        try:
            audit_log = AuditLog(
                user_id=user_id,
                user_email=user_email,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                details=json.dumps(details, default=str) if details else None,
                success=success,
                failure_reason=failure_reason
            )

            self.db.add(audit_log)
            self.db.commit()

            logger.info(
                f"Audit log: {user_id} {action} {resource_type}/{resource_id} - "
                f"{'SUCCESS' if success else 'FAILURE'}"
            )

        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create audit log: {e}")

    def log_context_action(self, context, action: str, order_id: int, **kwargs):
        """Shortcut for order-scoped actions performed by an acting context."""
        self.log_action(
            user_id=context.user_id,
            user_email=context.email,
            action=action,
            resource_type="ORDER",
            resource_id=str(order_id),
            **kwargs
        )

    def get_order_history(self, order_id: int, limit: int = 100) -> list:
        """Audit entries for an order, newest first."""
        return (
            self.db.query(AuditLog)
            .filter(AuditLog.resource_type == "ORDER", AuditLog.resource_id == str(order_id))
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit)
            .all()
        )

    def get_user_activity(self, user_id: str, since: datetime = None, limit: int = 100) -> list:
        """Get recent activity for a specific user."""
        query = self.db.query(AuditLog).filter(AuditLog.user_id == user_id)
        if since:
            query = query.filter(AuditLog.timestamp >= since)

        return query.order_by(AuditLog.timestamp.desc()).limit(limit).all()
