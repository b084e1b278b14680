"""
Server database model.
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from modmarket.app.db.session import Base


class Server(Base):
    """
    A buyer-owned deployment target.
    
    `mods` holds the active mod ids as comma-joined sorted integers.
    """
    __tablename__ = "servers"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    name = Column(String(100), nullable=False)
    ip = Column(String(64), nullable=False, index=True)
    port = Column(String(10), nullable=True)
    
    mods = Column(String(2048), default="", nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Server(id={self.id}, name='{self.name}', mods='{self.mods}')>"
