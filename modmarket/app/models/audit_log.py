"""
Audit Log Database Model.

Tracks money-moving and entitlement-changing actions for operators.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from modmarket.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking marketplace actions.
    
    Events logged:
    - DEPOSIT_RECORDED / PROFIT_CASHED_OUT
    - MODS_PURCHASED / BUNDLE_SUBSCRIBED
    - ALLOCATION_CHANGED / AUTO_RENEW_TOGGLED
    - RECONCILIATION_TRIGGERED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Whose account was affected
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    ip_address = Column(String(50), nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, target={self.target_username})>"
