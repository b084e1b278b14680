"""
Tests for the ledger: purchases, deposits and cash-out bookkeeping.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select

from modmarket.app.core.exceptions import InvalidAmountError, ResourceNotFoundError, UserNotFoundError
from modmarket.app.domain.billing.ledger import LedgerService, to_money
from modmarket.app.models.entitlement_enums import DepositMode
from modmarket.app.models.profit_trail import ProfitTrail


def test_to_money_rounds_half_up():
    assert to_money("1.005") == Decimal("1.01")
    assert to_money(3) == Decimal("3.00")
    assert to_money(0.1) == Decimal("0.10")


async def test_purchase_credits_developer(db_session, catalog, developer, buyer):
    entry = await LedgerService.record_purchase(db_session, buyer.id, "acme", "10.00", "1")
    await db_session.commit()
    
    assert entry is not None
    assert entry.payer_id == buyer.id
    assert entry.payee_id == developer.id
    assert entry.amount == Decimal("10.00")
    assert entry.profit == Decimal("0.00")
    assert entry.cashed_out is False
    
    await db_session.refresh(developer)
    assert developer.balance == Decimal("10.00")


async def test_purchase_does_not_debit_buyer(db_session, catalog, buyer):
    await LedgerService.record_purchase(db_session, buyer.id, "acme", "10.00", "1")
    await db_session.commit()
    
    await db_session.refresh(buyer)
    assert buyer.balance == Decimal("100.00")


async def test_purchase_unknown_developer_is_skipped(db_session, catalog, buyer):
    entry = await LedgerService.record_purchase(db_session, buyer.id, "nobody", "10.00", "1")
    await db_session.commit()
    
    assert entry is None
    rows = (await db_session.execute(select(ProfitTrail))).scalars().all()
    assert rows == []


async def test_purchase_developer_without_account_is_skipped(db_session, buyer):
    from modmarket.app.models.catalog import Developer
    db_session.add(Developer(developer_key="ghost", payable_login="missing_login"))
    await db_session.commit()
    
    assert await LedgerService.record_purchase(db_session, buyer.id, "ghost", "1.00", "7") is None


async def test_purchase_negative_amount_rejected(db_session, catalog, buyer):
    with pytest.raises(InvalidAmountError):
        await LedgerService.record_purchase(db_session, buyer.id, "acme", "-1.00", "1")


async def test_deposit_add_credits_net_amount(db_session, buyer):
    entry = await LedgerService.record_deposit(db_session, buyer.id, "100.00", DepositMode.ADD)
    await db_session.commit()
    
    await db_session.refresh(buyer)
    assert buyer.balance == Decimal("185.00")
    assert entry.item_ref == "Deposit (ADD)"
    assert entry.amount == Decimal("85.00")
    assert entry.profit == Decimal("15.00")
    assert entry.payer_id == entry.payee_id == buyer.id


async def test_deposit_set_overwrites_with_gross_amount(db_session, buyer):
    entry = await LedgerService.record_deposit(db_session, buyer.id, "40.00", DepositMode.SET)
    await db_session.commit()
    
    await db_session.refresh(buyer)
    assert buyer.balance == Decimal("40.00")
    assert entry.item_ref == "Deposit (SET)"
    assert entry.profit == Decimal("6.00")


async def test_deposit_accepts_string_mode(db_session, buyer):
    entry = await LedgerService.record_deposit(db_session, buyer.id, "10.00", "ADD")
    assert entry.item_ref == "Deposit (ADD)"


async def test_deposit_negative_amount_rejected(db_session, buyer):
    with pytest.raises(InvalidAmountError):
        await LedgerService.record_deposit(db_session, buyer.id, "-5", DepositMode.ADD)


async def test_deposit_unknown_user(db_session):
    with pytest.raises(UserNotFoundError):
        await LedgerService.record_deposit(db_session, 999, "5.00", DepositMode.ADD)


async def test_mark_cashed_out(db_session, catalog, buyer):
    entry = await LedgerService.record_purchase(db_session, buyer.id, "acme", "5.00", "2")
    await db_session.commit()
    
    updated = await LedgerService.mark_cashed_out(db_session, entry.id)
    await db_session.commit()
    
    assert updated.cashed_out is True
    assert updated.amount == Decimal("5.00")


async def test_mark_cashed_out_missing_entry(db_session):
    with pytest.raises(ResourceNotFoundError):
        await LedgerService.mark_cashed_out(db_session, 12345)


async def test_earnings_exclude_deposits(db_session, catalog, developer, buyer):
    await LedgerService.record_purchase(db_session, buyer.id, "acme", "10.00", "1")
    await LedgerService.record_purchase(db_session, buyer.id, "acme", "5.00", "2")
    await LedgerService.record_deposit(db_session, developer.id, "20.00", DepositMode.ADD)
    await db_session.commit()
    
    earnings = await LedgerService.earnings_for(db_session, developer.id)
    
    assert [e.item_ref for e in earnings] == ["2", "1"]


async def test_deposit_set_ignores_prior_balance(db_session, make_user):
    holder = await make_user("holder", balance="50.00")
    
    entry = await LedgerService.record_deposit(db_session, holder.id, "200", DepositMode.SET)
    await db_session.commit()
    
    await db_session.refresh(holder)
    assert holder.balance == Decimal("200.00")
    assert entry.profit == Decimal("30.00")
