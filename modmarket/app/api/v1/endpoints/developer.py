"""
Developer API Endpoints.

Sale history for accounts that receive developer earnings.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.db.session import get_db
from modmarket.app.core.dependencies import get_current_user
from modmarket.app.domain.billing.ledger import LedgerService
from modmarket.app.schemas.marketplace import ProfitTrailResponse

router = APIRouter(prefix="/developer", tags=["Developer"])


@router.get("/earnings", response_model=List[ProfitTrailResponse])
async def list_earnings(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Profit-trail rows where the caller is the payee, newest first.
    
    Deposits are not earnings and are left out.
    """
    return await LedgerService.earnings_for(db, current_user["user_id"])
