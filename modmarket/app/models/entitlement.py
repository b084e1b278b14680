"""
Entitlement database models: per-mod purchases and bundle subscriptions.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from modmarket.app.db.session import Base
from modmarket.app.models.entitlement_enums import EntitlementState, UNASSIGNED_SERVER_ID


class PurchaseEntitlement(Base):
    """
    One buyer's time-boxed right to use one mod on one server.
    
    `server_id` is UNASSIGNED_SERVER_ID while the mod sits in personal storage.
    `mod_id` is not a foreign key: mods may leave the catalog while
    entitlements for them are still outstanding.
    """
    __tablename__ = "purchase_entitlements"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    buyer_id = Column(Integer, index=True, nullable=False)
    mod_id = Column(Integer, index=True, nullable=False)
    server_id = Column(Integer, default=UNASSIGNED_SERVER_ID, nullable=False)
    
    auto_renew = Column(Boolean, default=True, nullable=False)
    state = Column(Enum(EntitlementState), default=EntitlementState.ACTIVE, nullable=False, index=True)
    
    bought_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    
    @property
    def is_unassigned(self) -> bool:
        return self.server_id == UNASSIGNED_SERVER_ID
    
    def __repr__(self):
        return f"<PurchaseEntitlement(id={self.id}, mod={self.mod_id}, server={self.server_id}, state='{self.state.value}')>"


class Subscription(Base):
    """
    One buyer's recurring right to a bundle of mods.
    
    Lapsed subscriptions are kept with active=False, never deleted.
    """
    __tablename__ = "subscriptions"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    login = Column(String(100), index=True, nullable=False)
    bundle_id = Column(Integer, index=True, nullable=False)
    
    active = Column(Boolean, default=True, nullable=False, index=True)
    auto_renew = Column(Boolean, default=True, nullable=False)
    
    bought_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    
    def __repr__(self):
        return f"<Subscription(id={self.id}, login='{self.login}', bundle={self.bundle_id}, active={self.active})>"
