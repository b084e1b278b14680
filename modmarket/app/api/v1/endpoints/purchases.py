"""
Purchase API Endpoints.

Direct mod purchases, bundle subscriptions and auto-renew switches.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.db.session import get_db, unit_of_work
from modmarket.app.core.dependencies import get_current_user
from modmarket.app.domain.billing.ledger import to_money
from modmarket.app.models.user import User
from modmarket.app.schemas.marketplace import (
    ModPurchaseRequest, ModPurchaseResponse, PurchaseEntitlementResponse,
    BundleSubscribeRequest, SubscriptionResponse, AutoRenewResponse
)
from modmarket.app.services.purchases import PurchaseService
from modmarket.app.services.audit import log_event, AuditAction

router = APIRouter(tags=["Purchases"])


@router.post("/purchases/mods", response_model=ModPurchaseResponse)
async def buy_mods(
    body: ModPurchaseRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Buy mods onto one of the caller's servers.
    
    Returns 402 when the total exceeds the caller's balance.
    """
    async with unit_of_work(db):
        purchases = await PurchaseService.buy_mods(
            db,
            buyer_id=current_user["user_id"],
            server_id=body.server_id,
            mod_ids=body.mod_ids,
        )
        payload = [PurchaseEntitlementResponse.model_validate(p) for p in purchases]
        buyer = await db.get(User, current_user["user_id"])
        balance = to_money(buyer.balance)
    
    await log_event(
        db=db,
        action=AuditAction.MODS_PURCHASED,
        actor=current_user,
        target_user_id=current_user["user_id"],
        metadata={"server_id": body.server_id, "mod_ids": [p.mod_id for p in payload]}
    )
    
    return ModPurchaseResponse(server_id=body.server_id, balance=balance, purchases=payload)


@router.post("/purchases/bundles", response_model=SubscriptionResponse)
async def subscribe_bundle(
    body: BundleSubscribeRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Subscribe to a developer's bundle; its mods land in personal storage.
    """
    async with unit_of_work(db):
        subscription = await PurchaseService.subscribe_bundle(
            db,
            buyer_id=current_user["user_id"],
            developer_login=body.developer_login,
        )
        payload = SubscriptionResponse.model_validate(subscription)
    
    await log_event(
        db=db,
        action=AuditAction.BUNDLE_SUBSCRIBED,
        actor=current_user,
        target_user_id=current_user["user_id"],
        metadata={"subscription_id": payload.id, "bundle_id": payload.bundle_id}
    )
    
    return payload


@router.post("/subscriptions/{subscription_id}/auto-renew", response_model=AutoRenewResponse)
async def toggle_subscription_auto_renew(
    subscription_id: int = Path(..., description="Subscription ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Flip auto-renew on one of the caller's subscriptions."""
    async with unit_of_work(db):
        subscription = await PurchaseService.toggle_subscription_auto_renew(
            db, current_user["user_id"], subscription_id
        )
        payload = AutoRenewResponse(id=subscription.id, auto_renew=subscription.auto_renew)
    
    await log_event(
        db=db,
        action=AuditAction.AUTO_RENEW_TOGGLED,
        actor=current_user,
        metadata={"subscription_id": payload.id, "auto_renew": payload.auto_renew}
    )
    
    return payload


@router.post("/purchases/{purchase_id}/auto-renew", response_model=AutoRenewResponse)
async def toggle_purchase_auto_renew(
    purchase_id: int = Path(..., description="Purchase ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Flip auto-renew on one of the caller's mod purchases."""
    async with unit_of_work(db):
        purchase = await PurchaseService.toggle_purchase_auto_renew(
            db, current_user["user_id"], purchase_id
        )
        payload = AutoRenewResponse(id=purchase.id, auto_renew=purchase.auto_renew)
    
    await log_event(
        db=db,
        action=AuditAction.AUTO_RENEW_TOGGLED,
        actor=current_user,
        metadata={"purchase_id": payload.id, "auto_renew": payload.auto_renew}
    )
    
    return payload
