"""
Catalog database models: mods, developers and subscription bundles.

The entitlement core only reads these tables.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric
from sqlalchemy.sql import func
from modmarket.app.db.session import Base


class Mod(Base):
    """A published, purchasable catalog item."""
    __tablename__ = "mods"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    developer_key = Column(String(100), index=True, nullable=False)
    price = Column(Numeric(12, 2), default=0, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Mod(id={self.id}, name='{self.name}', price={self.price})>"


class Developer(Base):
    """Maps a developer-group key to the login that receives the earnings."""
    __tablename__ = "developers"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    developer_key = Column(String(100), unique=True, index=True, nullable=False)
    payable_login = Column(String(100), index=True, nullable=False)
    
    def __repr__(self):
        return f"<Developer(key='{self.developer_key}', payable='{self.payable_login}')>"


class Bundle(Base):
    """
    Subscription bundle offered by a developer (the bundle-price table).
    
    `mod_ids` uses the same comma-joined format as Server.mods.
    """
    __tablename__ = "bundles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    developer_key = Column(String(100), unique=True, index=True, nullable=False)
    mod_ids = Column(String(2048), default="", nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    
    def __repr__(self):
        return f"<Bundle(id={self.id}, developer='{self.developer_key}', price={self.price})>"
