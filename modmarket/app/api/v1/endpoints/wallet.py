"""
Wallet API Endpoints.

Read-only view of the caller's balance and personal storage.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.db.session import get_db
from modmarket.app.core.dependencies import get_current_user
from modmarket.app.core.exceptions import UserNotFoundError
from modmarket.app.domain.billing.ledger import to_money
from modmarket.app.domain.entitlements.codec import decode_claimed_slots
from modmarket.app.models.user import User
from modmarket.app.schemas.marketplace import WalletResponse

router = APIRouter(tags=["Wallet"])


@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Current balance and claimed mod slots of the authenticated user.
    """
    user = await db.get(User, current_user["user_id"])
    if user is None:
        raise UserNotFoundError(current_user["user_id"])
    
    return WalletResponse(
        user_id=user.id,
        login=user.login,
        balance=to_money(user.balance),
        claimed_mods=decode_claimed_slots(user.claimed_mods).as_dict(),
    )
