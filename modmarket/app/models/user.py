"""
User database model.

This module defines the marketplace account model.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Numeric
from sqlalchemy.sql import func
from modmarket.app.db.session import Base
from modmarket.app.models.enums import UserRole


class User(Base):
    """
    Marketplace account.
    
    `balance` is mutated only by the ledger, purchase flows and the
    reconciliation tick. `claimed_mods` is the serialized ClaimedSlots
    multiset (`modId[count],modId[count]`), empty string when empty.
    """
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    login = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    
    role = Column(Enum(UserRole), default=UserRole.BUYER, nullable=False)
    
    balance = Column(Numeric(12, 2), default=0, nullable=False)
    claimed_mods = Column(String(2048), default="", nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<User(id={self.id}, login='{self.login}', role='{self.role.value}', balance={self.balance})>"
