"""
Tests for direct purchases, bundle subscriptions and auto-renew toggles.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import select

from modmarket.app.core.exceptions import (
    EmptyBatchError,
    InsufficientBalanceError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
)
from modmarket.app.domain.entitlements.reconciliation import expiry_date
from modmarket.app.models.catalog import Developer, Bundle
from modmarket.app.models.entitlement_enums import EntitlementState
from modmarket.app.models.profit_trail import ProfitTrail
from modmarket.app.services.purchases import PurchaseService


async def test_buy_mods_charges_only_new_mods(db_session, catalog, buyer, developer, make_server):
    server = await make_server(buyer, mods="2")
    
    purchases = await PurchaseService.buy_mods(db_session, buyer.id, server.id, [1, 2, 3])
    await db_session.commit()
    
    assert sorted(p.mod_id for p in purchases) == [1, 3]
    assert all(p.server_id == server.id for p in purchases)
    assert all(p.state == EntitlementState.ACTIVE and p.auto_renew for p in purchases)
    
    await db_session.refresh(buyer)
    await db_session.refresh(developer)
    await db_session.refresh(server)
    assert buyer.balance == Decimal("90.00")
    assert developer.balance == Decimal("10.00")
    assert server.mods == "1,2,3"


async def test_free_mods_write_no_trail(db_session, catalog, buyer, make_server):
    server = await make_server(buyer)
    
    await PurchaseService.buy_mods(db_session, buyer.id, server.id, [3])
    await db_session.commit()
    
    rows = (await db_session.execute(select(ProfitTrail))).scalars().all()
    assert rows == []


async def test_new_purchase_expires_after_renewal_period(db_session, catalog, buyer, make_server):
    server = await make_server(buyer)
    
    purchases = await PurchaseService.buy_mods(db_session, buyer.id, server.id, [1])
    
    today = datetime.now(timezone.utc).date()
    assert (expiry_date(purchases[0].expires_at) - today).days >= 29


async def test_buy_mods_over_balance_changes_nothing(db_session, catalog, make_user, make_server):
    poor = await make_user("poor", balance="12.00")
    server = await make_server(poor)
    
    with pytest.raises(InsufficientBalanceError):
        await PurchaseService.buy_mods(db_session, poor.id, server.id, [1, 2])
    await db_session.rollback()
    
    await db_session.refresh(poor)
    await db_session.refresh(server)
    assert poor.balance == Decimal("12.00")
    assert server.mods == ""


async def test_buy_mods_unknown_ids(db_session, catalog, buyer, make_server):
    server = await make_server(buyer)
    
    with pytest.raises(EmptyBatchError):
        await PurchaseService.buy_mods(db_session, buyer.id, server.id, [77])


async def test_buy_mods_on_foreign_server(db_session, catalog, buyer, make_user, make_server):
    other = await make_user("other")
    server = await make_server(other)
    
    with pytest.raises(InsufficientPermissionsError):
        await PurchaseService.buy_mods(db_session, buyer.id, server.id, [1])


async def test_subscribe_bundle(db_session, catalog, buyer, developer):
    subscription = await PurchaseService.subscribe_bundle(db_session, buyer.id, developer.login)
    await db_session.commit()
    
    assert subscription.active is True
    assert subscription.login == buyer.login
    await db_session.refresh(buyer)
    await db_session.refresh(developer)
    assert buyer.balance == Decimal("88.00")
    assert buyer.claimed_mods == "1[1],2[1]"
    assert developer.balance == Decimal("12.00")


async def test_subscribe_bundle_skips_delisted_mods(db_session, buyer, make_user):
    dev = await make_user("indie", role=buyer.role)
    db_session.add_all([
        Developer(developer_key="indie", payable_login=dev.login),
        Bundle(developer_key="indie", mod_ids="50,51", price=Decimal("2.00")),
    ])
    await db_session.commit()
    
    await PurchaseService.subscribe_bundle(db_session, buyer.id, "indie")
    await db_session.commit()
    
    await db_session.refresh(buyer)
    assert buyer.claimed_mods == ""
    assert buyer.balance == Decimal("98.00")


async def test_subscribe_bundle_needs_balance(db_session, catalog, make_user, developer):
    poor = await make_user("poor", balance="11.99")
    
    with pytest.raises(InsufficientBalanceError):
        await PurchaseService.subscribe_bundle(db_session, poor.id, developer.login)


async def test_subscribe_unknown_developer(db_session, catalog, buyer):
    with pytest.raises(ResourceNotFoundError):
        await PurchaseService.subscribe_bundle(db_session, buyer.id, "nobody")


async def test_toggle_subscription_auto_renew(db_session, catalog, buyer, developer, make_user):
    subscription = await PurchaseService.subscribe_bundle(db_session, buyer.id, developer.login)
    await db_session.commit()
    
    toggled = await PurchaseService.toggle_subscription_auto_renew(db_session, buyer.id, subscription.id)
    assert toggled.auto_renew is False
    
    stranger = await make_user("stranger")
    with pytest.raises(InsufficientPermissionsError):
        await PurchaseService.toggle_subscription_auto_renew(db_session, stranger.id, subscription.id)


async def test_toggle_purchase_auto_renew(db_session, catalog, buyer, make_server, make_user):
    server = await make_server(buyer)
    purchases = await PurchaseService.buy_mods(db_session, buyer.id, server.id, [1])
    await db_session.commit()
    
    toggled = await PurchaseService.toggle_purchase_auto_renew(db_session, buyer.id, purchases[0].id)
    assert toggled.auto_renew is False
    toggled = await PurchaseService.toggle_purchase_auto_renew(db_session, buyer.id, purchases[0].id)
    assert toggled.auto_renew is True
    
    with pytest.raises(ResourceNotFoundError):
        await PurchaseService.toggle_purchase_auto_renew(db_session, buyer.id, 999)
