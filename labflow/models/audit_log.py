"""Audit log model for result lifecycle traceability."""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, Index
from sqlalchemy.sql import func
from labflow.database import Base


class AuditLog(Base):
    """Audit trail of result entry, approval, decline and print actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    timestamp = Column(DateTime, server_default=func.now())

    # User information
    user_id = Column(String(100), nullable=False)
    user_email = Column(String(255), nullable=True)

    # Action details
    action = Column(String(50), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(100), nullable=True)
    details = Column(Text, nullable=True)  # JSON object

    # Results
    success = Column(Boolean, nullable=False)
    failure_reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_audit_timestamp", "timestamp"),
        Index("idx_audit_user_id", "user_id"),
        Index("idx_audit_resource", "resource_type", "resource_id"),
        Index("idx_audit_action", "action"),
    )
