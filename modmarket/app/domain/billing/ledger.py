"""
Ledger Service (Domain Logic).

Moves money between buyers, developers and the marketplace, writing exactly
one profit-trail row per movement.

The ledger never commits. Callers wrap it (together with any other change of
the same logical operation) in one transaction, so a balance change and its
trail row are persisted together or not at all.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Union

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.core.config import settings
from modmarket.app.core.exceptions import (
    DeveloperNotResolvedError,
    InvalidAmountError,
    ResourceNotFoundError,
    UserNotFoundError,
)
from modmarket.app.domain.catalog.resolver import CatalogResolver
from modmarket.app.models.entitlement_enums import DepositMode
from modmarket.app.models.profit_trail import ProfitTrail
from modmarket.app.models.user import User

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

Money = Union[Decimal, int, float, str]


def to_money(value: Money) -> Decimal:
    """Normalize any numeric input to a 2-place Decimal."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class LedgerService:
    
    @staticmethod
    async def record_purchase(
        db: AsyncSession,
        buyer_id: int,
        developer_key: str,
        gross_amount: Money,
        item_ref: str,
    ) -> Optional[ProfitTrail]:
        """
        Credit a developer for one sale.
        
        The payable account receives the full gross amount minus the
        marketplace purchase cut (currently zero, still recorded as profit).
        Debiting the buyer is the caller's job: it already checked the
        balance when it decided to buy or renew.
        
        Returns:
            The trail row, or None when the developer cannot be resolved
            (stale catalog data is a skip, not a failure).
        
        Raises:
            InvalidAmountError: gross_amount is negative
        """
        gross = to_money(gross_amount)
        if gross < 0:
            raise InvalidAmountError(gross_amount)
        
        try:
            payee = await CatalogResolver.resolve_payable_account(db, developer_key, lock=True)
        except DeveloperNotResolvedError as exc:
            logger.info("Purchase not credited: %s", exc, extra={"buyer_id": buyer_id, "item_ref": item_ref})
            return None
        
        profit = to_money(gross * Decimal(str(settings.purchase_commission_rate)))
        payee.balance = to_money(payee.balance) + (gross - profit)
        
        entry = ProfitTrail(
            payer_id=buyer_id,
            item_ref=item_ref,
            amount=gross,
            payee_id=payee.id,
            profit=profit,
            cashed_out=False,
        )
        db.add(entry)
        await db.flush()
        
        logger.info(
            "Purchase credited",
            extra={"buyer_id": buyer_id, "payee_id": payee.id, "amount": str(gross), "item_ref": item_ref}
        )
        return entry
    
    @staticmethod
    async def record_deposit(
        db: AsyncSession,
        user_id: int,
        amount: Money,
        mode: DepositMode,
    ) -> ProfitTrail:
        """
        Settle a balance top-up.
        
        Commission is `deposit_commission_rate` of the amount. ADD credits the
        net amount; SET overwrites the balance with the gross amount while
        still recording the commission as profit.
        
        Raises:
            InvalidAmountError: amount is negative
            UserNotFoundError: no such account
        """
        gross = to_money(amount)
        if gross < 0:
            raise InvalidAmountError(amount)
        
        result = await db.execute(select(User).where(User.id == user_id).with_for_update())
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        
        commission = to_money(gross * Decimal(str(settings.deposit_commission_rate)))
        net = gross - commission
        
        mode = DepositMode(mode)
        if mode == DepositMode.SET:
            user.balance = gross
        else:
            user.balance = to_money(user.balance) + net
        
        entry = ProfitTrail(
            payer_id=user.id,
            item_ref=f"Deposit ({mode.value})",
            amount=net,
            payee_id=user.id,
            profit=commission,
            cashed_out=False,
        )
        db.add(entry)
        await db.flush()
        
        logger.info(
            "Deposit recorded",
            extra={"user_id": user.id, "mode": mode.value, "amount": str(gross), "commission": str(commission)}
        )
        return entry
    
    @staticmethod
    async def mark_cashed_out(db: AsyncSession, entry_id: int) -> ProfitTrail:
        """Flip `cashed_out`; the only mutation a trail row ever receives."""
        result = await db.execute(select(ProfitTrail).where(ProfitTrail.id == entry_id).with_for_update())
        entry = result.scalar_one_or_none()
        if entry is None:
            raise ResourceNotFoundError("Profit trail entry", entry_id)
        entry.cashed_out = True
        await db.flush()
        return entry
    
    @staticmethod
    async def earnings_for(db: AsyncSession, payee_id: int) -> List[ProfitTrail]:
        """Sale rows paid to `payee_id` (deposits excluded), newest first."""
        result = await db.execute(
            select(ProfitTrail)
            .where(ProfitTrail.payee_id == payee_id, ProfitTrail.item_ref.notlike("Deposit (%"))
            .order_by(desc(ProfitTrail.created_at), desc(ProfitTrail.id))
        )
        return list(result.scalars().all())
