"""
Profit trail database model.

Append-only record of every monetary movement.
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, DateTime, Numeric
from sqlalchemy.sql import func
from modmarket.app.db.session import Base


class ProfitTrail(Base):
    """
    Profit trail entry.
    
    One row per purchase or deposit. Rows are never updated after
    insertion except to flip `cashed_out`, and never deleted.
    """
    __tablename__ = "profit_trail"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Parties
    payer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    payee_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    # What was paid for: mod id, bundle mod list, or "Deposit (SET|ADD)"
    item_ref = Column(String(2048), nullable=False)
    
    # Financials
    amount = Column(Numeric(12, 2), nullable=False)
    profit = Column(Numeric(12, 2), default=0, nullable=False)  # marketplace cut
    
    cashed_out = Column(Boolean, default=False, nullable=False)
    
    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<ProfitTrail(id={self.id}, item='{self.item_ref}', amount={self.amount}, profit={self.profit})>"
