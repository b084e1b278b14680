"""
Marketplace Schemas.

Request and response models for wallet, allocation, purchase and admin endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from modmarket.app.models.entitlement_enums import DepositMode


class WalletResponse(BaseModel):
    """Balance and personal storage of the calling account."""
    user_id: int
    login: str
    balance: Decimal
    claimed_mods: Dict[int, int]


class AllocationRequest(BaseModel):
    """Move mods between a server and personal storage."""
    to_server: List[int] = Field(default_factory=list)
    to_storage: List[int] = Field(default_factory=list)


class AllocationResponse(BaseModel):
    server_id: int
    active_mods: List[int]
    claimed_mods: Dict[int, int]


class ModPurchaseRequest(BaseModel):
    """Buy mods directly onto a server."""
    server_id: int
    mod_ids: List[int] = Field(..., min_length=1)


class PurchaseEntitlementResponse(BaseModel):
    id: int
    mod_id: int
    server_id: int
    auto_renew: bool
    expires_at: datetime
    
    class Config:
        from_attributes = True


class ModPurchaseResponse(BaseModel):
    server_id: int
    balance: Decimal
    purchases: List[PurchaseEntitlementResponse]


class BundleSubscribeRequest(BaseModel):
    developer_login: str = Field(..., min_length=1, max_length=100)


class SubscriptionResponse(BaseModel):
    id: int
    login: str
    bundle_id: int
    active: bool
    auto_renew: bool
    expires_at: datetime
    
    class Config:
        from_attributes = True


class AutoRenewResponse(BaseModel):
    id: int
    auto_renew: bool


class ProfitTrailResponse(BaseModel):
    """Schema for displaying a profit-trail entry."""
    id: int
    payer_id: int
    payee_id: int
    item_ref: str
    amount: Decimal
    profit: Decimal
    cashed_out: bool
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., decimal_places=2)
    mode: DepositMode = DepositMode.ADD


class DepositResponse(BaseModel):
    user_id: int
    balance: Decimal
    entry: ProfitTrailResponse


class TickSummaryResponse(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime]
    renewed: int
    lapsed: int
    removed: int
    insufficient_balance: int
    skipped: int
    failed: int
    
    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    target_user_id: Optional[int]
    target_username: Optional[str]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime
    
    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
