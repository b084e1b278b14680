"""
Purchase flows: direct mod purchases, bundle subscriptions and auto-renew toggles.

Every call runs inside the caller's transaction and only flushes. The buyer
and the server are locked before the balance is checked, so two concurrent
purchases cannot both spend the same money.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.core.config import settings
from modmarket.app.core.exceptions import (
    EmptyBatchError,
    InsufficientBalanceError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    UserNotFoundError,
)
from modmarket.app.domain.billing.ledger import LedgerService, to_money
from modmarket.app.domain.catalog.resolver import CatalogResolver
from modmarket.app.domain.entitlements.codec import (
    decode_claimed_slots,
    decode_mod_list,
    encode_claimed_slots,
    encode_mod_list,
)
from modmarket.app.models.catalog import Mod
from modmarket.app.models.entitlement import PurchaseEntitlement, Subscription
from modmarket.app.models.server import Server
from modmarket.app.models.user import User

logger = logging.getLogger(__name__)


async def _lock_user(db: AsyncSession, user_id: int) -> User:
    user = (
        await db.execute(select(User).where(User.id == user_id).with_for_update())
    ).scalar_one_or_none()
    if user is None:
        raise UserNotFoundError(user_id)
    return user


def _renewal_deadline() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=settings.renewal_period_days)


class PurchaseService:
    
    @staticmethod
    async def buy_mods(
        db: AsyncSession,
        buyer_id: int,
        server_id: int,
        mod_ids: Iterable[int],
    ) -> List[PurchaseEntitlement]:
        """
        Buy catalog mods straight onto one of the buyer's servers.
        
        Mods the server already exposes are not charged again. The buyer is
        debited once for the total; each developer is credited per mod.
        
        Returns:
            The new purchase entitlements (empty when everything was already active)
        
        Raises:
            UserNotFoundError / ResourceNotFoundError: unknown buyer or server
            InsufficientPermissionsError: server belongs to someone else
            EmptyBatchError: none of the ids is in the catalog
            InsufficientBalanceError: total price exceeds the balance
        """
        buyer = await _lock_user(db, buyer_id)
        server = (
            await db.execute(select(Server).where(Server.id == server_id).with_for_update())
        ).scalar_one_or_none()
        if server is None:
            raise ResourceNotFoundError("Server", server_id)
        if server.owner_id != buyer.id:
            raise InsufficientPermissionsError("Server belongs to another user")
        
        wanted = list(dict.fromkeys(mod_ids))
        result = await db.execute(select(Mod).where(Mod.id.in_(wanted)))
        catalog = {mod.id: mod for mod in result.scalars().all()}
        if not catalog:
            raise EmptyBatchError()
        
        active = decode_mod_list(server.mods)
        new_mods = [catalog[mod_id] for mod_id in wanted if mod_id in catalog and mod_id not in active]
        
        total = sum((to_money(mod.price) for mod in new_mods), Decimal("0.00"))
        balance = to_money(buyer.balance)
        if total > balance:
            raise InsufficientBalanceError(total, balance)
        
        expires_at = _renewal_deadline()
        entitlements = []
        for mod in new_mods:
            active.append(mod.id)
            entitlement = PurchaseEntitlement(
                buyer_id=buyer.id,
                mod_id=mod.id,
                server_id=server.id,
                auto_renew=True,
                expires_at=expires_at,
            )
            db.add(entitlement)
            entitlements.append(entitlement)
            if to_money(mod.price) > 0:
                await LedgerService.record_purchase(db, buyer.id, mod.developer_key, mod.price, str(mod.id))
        
        buyer.balance = balance - total
        server.mods = encode_mod_list(active)
        await db.flush()
        
        logger.info(
            "Mods purchased",
            extra={"buyer_id": buyer.id, "server_id": server.id, "mod_ids": [m.id for m in new_mods], "total": str(total)}
        )
        return entitlements
    
    @staticmethod
    async def subscribe_bundle(db: AsyncSession, buyer_id: int, developer_login: str) -> Subscription:
        """
        Subscribe the buyer to the bundle published by `developer_login`.
        
        Each bundle mod still in the catalog adds one claimed slot to the
        buyer's personal storage.
        
        Raises:
            ResourceNotFoundError: no developer or no priced bundle for that login
            InsufficientBalanceError: bundle price exceeds the balance
        """
        buyer = await _lock_user(db, buyer_id)
        
        developer = await CatalogResolver.developer_by_login(db, developer_login)
        if developer is None:
            raise ResourceNotFoundError("Developer", developer_login)
        bundle = await CatalogResolver.bundle_by_developer(db, developer.developer_key)
        if bundle is None or to_money(bundle.price) <= 0:
            raise ResourceNotFoundError("Bundle", developer_login)
        
        price = to_money(bundle.price)
        balance = to_money(buyer.balance)
        if price > balance:
            raise InsufficientBalanceError(price, balance)
        
        subscription = Subscription(
            login=buyer.login,
            bundle_id=bundle.id,
            active=True,
            auto_renew=True,
            expires_at=_renewal_deadline(),
        )
        db.add(subscription)
        
        await LedgerService.record_purchase(db, buyer.id, bundle.developer_key, price, bundle.mod_ids)
        buyer.balance = balance - price
        
        known = await CatalogResolver.valid_mod_ids(db, decode_mod_list(bundle.mod_ids))
        slots = decode_claimed_slots(buyer.claimed_mods)
        for mod_id in sorted(known):
            slots.increment(mod_id)
        buyer.claimed_mods = encode_claimed_slots(slots)
        await db.flush()
        
        logger.info(
            "Bundle subscribed",
            extra={"buyer_id": buyer.id, "bundle_id": bundle.id, "price": str(price)}
        )
        return subscription
    
    @staticmethod
    async def toggle_subscription_auto_renew(db: AsyncSession, user_id: int, subscription_id: int) -> Subscription:
        user = await _lock_user(db, user_id)
        subscription = (
            await db.execute(
                select(Subscription).where(Subscription.id == subscription_id).with_for_update()
            )
        ).scalar_one_or_none()
        if subscription is None:
            raise ResourceNotFoundError("Subscription", subscription_id)
        if subscription.login != user.login:
            raise InsufficientPermissionsError("Subscription belongs to another user")
        
        subscription.auto_renew = not subscription.auto_renew
        await db.flush()
        return subscription
    
    @staticmethod
    async def toggle_purchase_auto_renew(db: AsyncSession, user_id: int, purchase_id: int) -> PurchaseEntitlement:
        purchase = (
            await db.execute(
                select(PurchaseEntitlement).where(PurchaseEntitlement.id == purchase_id).with_for_update()
            )
        ).scalar_one_or_none()
        if purchase is None:
            raise ResourceNotFoundError("Purchase", purchase_id)
        if purchase.buyer_id != user_id:
            raise InsufficientPermissionsError("Purchase belongs to another user")
        
        purchase.auto_renew = not purchase.auto_renew
        await db.flush()
        return purchase
