"""
Entitlement reconciliation (one tick).

Renews or expires every time-boxed entitlement whose expiry date has passed:

- Subscriptions (active only): auto-renew charges the bundle price and pushes
  the expiry; otherwise the row is kept with active=False.
- Purchase entitlements: auto-renew charges the mod price when the buyer can
  afford it, and is retried next tick when they cannot or the mod is no longer
  in the catalog. Without auto-renew the mod is taken off its server, or, for
  mods held in personal storage, one claimed slot is released.

Each item is decided inside its own SAVEPOINT, so a failure rolls back that
item only. Everything the tick changed is committed once at the end.
"""

import enum
import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.core.config import settings
from modmarket.app.domain.billing.ledger import LedgerService, to_money
from modmarket.app.domain.catalog.resolver import CatalogResolver
from modmarket.app.domain.entitlements.codec import (
    decode_claimed_slots,
    decode_mod_list,
    encode_claimed_slots,
    encode_mod_list,
)
from modmarket.app.models.entitlement import PurchaseEntitlement, Subscription
from modmarket.app.models.entitlement_enums import EntitlementState
from modmarket.app.models.server import Server
from modmarket.app.models.user import User

logger = logging.getLogger(__name__)


class TickOutcome(str, enum.Enum):
    NOT_DUE = "NOT_DUE"
    RENEWED = "RENEWED"
    EXPIRED_KEPT = "EXPIRED_KEPT"  # subscription lapsed, row kept inactive
    EXPIRED_REMOVED = "EXPIRED_REMOVED"  # purchase taken off server / claims
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    SKIPPED = "SKIPPED"


class TickSummary(BaseModel):
    """Counts of what one reconciliation tick did."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    renewed: int = 0
    lapsed: int = 0
    removed: int = 0
    insufficient_balance: int = 0
    skipped: int = 0
    failed: int = 0
    
    def record(self, outcome: TickOutcome) -> None:
        if outcome == TickOutcome.RENEWED:
            self.renewed += 1
        elif outcome == TickOutcome.EXPIRED_KEPT:
            self.lapsed += 1
        elif outcome == TickOutcome.EXPIRED_REMOVED:
            self.removed += 1
        elif outcome == TickOutcome.INSUFFICIENT_BALANCE:
            self.insufficient_balance += 1
        elif outcome == TickOutcome.SKIPPED:
            self.skipped += 1


def expiry_date(value: datetime) -> date:
    """Calendar date (UTC) of an expiry timestamp; naive values are taken as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


ItemHandler = Callable[[AsyncSession, int, datetime], Awaitable[TickOutcome]]


class ReconciliationService:
    
    @staticmethod
    async def run_tick(db: AsyncSession, now: Optional[datetime] = None) -> TickSummary:
        """
        Reconcile all subscriptions and purchase entitlements that are due.
        
        Args:
            db: Session owned by the caller; committed once at the end
            now: Clock for this tick (defaults to the current UTC time)
        
        Returns:
            TickSummary with per-outcome counts
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        else:
            now = now.astimezone(timezone.utc)
        start_of_today = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        summary = TickSummary(started_at=now)
        
        logger.info("Refreshing expired subscriptions")
        subscription_ids = (
            await db.execute(
                select(Subscription.id)
                .where(Subscription.active.is_(True), Subscription.expires_at < start_of_today)
                .order_by(Subscription.id)
            )
        ).scalars().all()
        for subscription_id in subscription_ids:
            await ReconciliationService._reconcile_item(
                db, summary, "subscription", subscription_id, now,
                ReconciliationService._reconcile_subscription,
            )
        
        logger.info("Refreshing expired purchases")
        purchase_ids = (
            await db.execute(
                select(PurchaseEntitlement.id)
                .where(
                    PurchaseEntitlement.state != EntitlementState.EXPIRED_REMOVED,
                    PurchaseEntitlement.expires_at < start_of_today,
                )
                .order_by(PurchaseEntitlement.id)
            )
        ).scalars().all()
        for purchase_id in purchase_ids:
            await ReconciliationService._reconcile_item(
                db, summary, "purchase", purchase_id, now,
                ReconciliationService._reconcile_purchase,
            )
        
        await db.commit()
        summary.finished_at = datetime.now(timezone.utc)
        logger.info("Reconciliation tick finished", extra=summary.model_dump(mode="json"))
        return summary
    
    @staticmethod
    async def _reconcile_item(
        db: AsyncSession,
        summary: TickSummary,
        kind: str,
        item_id: int,
        now: datetime,
        handler: ItemHandler,
    ) -> None:
        try:
            async with db.begin_nested():
                outcome = await handler(db, item_id, now)
        except Exception:
            summary.failed += 1
            logger.exception("Failed to reconcile %s %s; left for next tick", kind, item_id)
            return
        summary.record(outcome)
    
    @staticmethod
    async def _reconcile_subscription(db: AsyncSession, subscription_id: int, now: datetime) -> TickOutcome:
        subscription = (
            await db.execute(
                select(Subscription).where(Subscription.id == subscription_id).with_for_update()
            )
        ).scalar_one_or_none()
        if subscription is None or not subscription.active:
            return TickOutcome.SKIPPED
        if expiry_date(subscription.expires_at) >= now.date():
            return TickOutcome.NOT_DUE
        
        if not subscription.auto_renew:
            subscription.active = False
            await db.flush()
            logger.info("Subscription %s lapsed", subscription.id)
            return TickOutcome.EXPIRED_KEPT
        
        user = (
            await db.execute(select(User).where(User.login == subscription.login).with_for_update())
        ).scalar_one_or_none()
        if user is None:
            logger.warning("Subscription %s belongs to unknown login %r", subscription.id, subscription.login)
            return TickOutcome.SKIPPED
        
        bundle = await CatalogResolver.get_bundle(db, subscription.bundle_id)
        if bundle is None:
            logger.warning("Subscription %s: bundle %s no longer priced", subscription.id, subscription.bundle_id)
            return TickOutcome.SKIPPED
        
        price = to_money(bundle.price)
        if to_money(user.balance) < price:
            logger.warning("User %s doesn't have enough balance for subscription renewal", user.id)
            return TickOutcome.INSUFFICIENT_BALANCE
        
        await LedgerService.record_purchase(db, user.id, bundle.developer_key, price, bundle.mod_ids)
        user.balance = to_money(user.balance) - price
        subscription.expires_at = now + timedelta(days=settings.renewal_period_days)
        await db.flush()
        logger.info("Subscription %s renewed", subscription.id, extra={"price": str(price)})
        return TickOutcome.RENEWED
    
    @staticmethod
    async def _reconcile_purchase(db: AsyncSession, purchase_id: int, now: datetime) -> TickOutcome:
        purchase = (
            await db.execute(
                select(PurchaseEntitlement).where(PurchaseEntitlement.id == purchase_id).with_for_update()
            )
        ).scalar_one_or_none()
        if purchase is None or purchase.state == EntitlementState.EXPIRED_REMOVED:
            return TickOutcome.SKIPPED
        if expiry_date(purchase.expires_at) >= now.date():
            return TickOutcome.NOT_DUE
        
        user = (
            await db.execute(select(User).where(User.id == purchase.buyer_id).with_for_update())
        ).scalar_one_or_none()
        
        if purchase.is_unassigned and user is None:
            logger.warning("Purchase %s belongs to unknown user %s", purchase.id, purchase.buyer_id)
            return TickOutcome.SKIPPED
        
        if purchase.auto_renew and user is not None:
            mod = await CatalogResolver.get_mod(db, purchase.mod_id)
            if mod is None:
                logger.warning("Purchase %s: mod %s not in catalog, skipping", purchase.id, purchase.mod_id)
                return TickOutcome.SKIPPED
            price = to_money(mod.price)
            if to_money(user.balance) < price:
                # Kept in place (no removal) until funds arrive or auto-renew is switched off
                logger.warning("User %s doesn't have enough balance for renewal", user.id)
                return TickOutcome.INSUFFICIENT_BALANCE
            return await ReconciliationService._renew_purchase(db, purchase, user, mod.developer_key, price, now)
        
        if purchase.is_unassigned:
            slots = decode_claimed_slots(user.claimed_mods)
            slots.decrement(purchase.mod_id)
            user.claimed_mods = encode_claimed_slots(slots)
        else:
            server = (
                await db.execute(select(Server).where(Server.id == purchase.server_id).with_for_update())
            ).scalar_one_or_none()
            if server is not None:
                active = decode_mod_list(server.mods)
                if purchase.mod_id in active:
                    active.remove(purchase.mod_id)
                    server.mods = encode_mod_list(active)
        
        purchase.state = EntitlementState.EXPIRED_REMOVED
        await db.flush()
        logger.info("Purchase %s expired", purchase.id, extra={"mod_id": purchase.mod_id, "server_id": purchase.server_id})
        return TickOutcome.EXPIRED_REMOVED
    
    @staticmethod
    async def _renew_purchase(
        db: AsyncSession,
        purchase: PurchaseEntitlement,
        user: User,
        developer_key: str,
        price: Decimal,
        now: datetime,
    ) -> TickOutcome:
        await LedgerService.record_purchase(db, user.id, developer_key, price, str(purchase.mod_id))
        user.balance = to_money(user.balance) - price
        purchase.expires_at = now + timedelta(days=settings.renewal_period_days)
        purchase.state = EntitlementState.RENEWED
        await db.flush()
        logger.info("Purchase %s renewed", purchase.id, extra={"price": str(price)})
        return TickOutcome.RENEWED
