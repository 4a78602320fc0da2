"""
Audit Log Database Model.

Tracks admin wallet actions and order status changes for reconciliation.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - WALLET_CREDITED / WALLET_DEBITED (admin adjustments)
    - PAYMENT_CREDITED (gateway top-ups)
    - ORDER_CHARGED / ORDER_HELD
    - ORDER_STATUS_CHANGED
    - ORDER_DELETED (hard delete, ledger untouched)
    """
    __tablename__ = "audit_logs"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor = Column(String(255), nullable=True, index=True)
    actor_role = Column(String(30), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which account / order the action touched
    target_enrollment = Column(String(100), nullable=True, index=True)
    target_order_id = Column(String(100), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor})>"
