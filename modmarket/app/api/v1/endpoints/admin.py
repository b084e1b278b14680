"""
Admin API Endpoints.

Balance top-ups, cash-out bookkeeping, on-demand reconciliation and the audit trail.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.db.session import get_db, unit_of_work
from modmarket.app.core.guards import require_admin
from modmarket.app.domain.billing.ledger import LedgerService, to_money
from modmarket.app.domain.entitlements.reconciliation import ReconciliationService
from modmarket.app.models.user import User
from modmarket.app.schemas.marketplace import (
    DepositRequest, DepositResponse, ProfitTrailResponse,
    TickSummaryResponse, AuditTrailResponse, AuditLogResponse
)
from modmarket.app.services.audit import log_event, AuditAction, get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/users/{user_id}/deposit", response_model=DepositResponse)
async def record_deposit(
    body: DepositRequest,
    user_id: int = Path(..., description="Account to top up"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a confirmed top-up (admin-only).
    
    ADD credits the amount net of commission; SET overwrites the balance.
    """
    async with unit_of_work(db):
        entry = await LedgerService.record_deposit(db, user_id, body.amount, body.mode)
        user = await db.get(User, user_id)
        balance = to_money(user.balance)
        login = user.login
    
    await db.refresh(entry)
    
    await log_event(
        db=db,
        action=AuditAction.DEPOSIT_RECORDED,
        actor=admin,
        target_user_id=user_id,
        target_username=login,
        metadata={"amount": str(body.amount), "mode": body.mode.value, "entry_id": entry.id}
    )
    
    return DepositResponse(
        user_id=user_id,
        balance=balance,
        entry=ProfitTrailResponse.model_validate(entry),
    )


@router.post("/profit-trail/{entry_id}/cash-out", response_model=ProfitTrailResponse)
async def cash_out(
    entry_id: int = Path(..., description="Profit trail entry ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Mark a profit-trail entry as paid out (admin-only)."""
    async with unit_of_work(db):
        entry = await LedgerService.mark_cashed_out(db, entry_id)
    
    await db.refresh(entry)
    
    await log_event(
        db=db,
        action=AuditAction.PROFIT_CASHED_OUT,
        actor=admin,
        target_user_id=entry.payee_id,
        metadata={"entry_id": entry.id, "amount": str(entry.amount)}
    )
    
    return ProfitTrailResponse.model_validate(entry)


@router.post("/reconciliation/run", response_model=TickSummaryResponse)
async def run_reconciliation(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Run one reconciliation tick now (admin-only).
    
    Independent of the background loop; items already handled today are
    not due again.
    """
    summary = await ReconciliationService.run_tick(db)
    
    await log_event(
        db=db,
        action=AuditAction.RECONCILIATION_TRIGGERED,
        actor=admin,
        metadata=summary.model_dump(mode="json")
    )
    
    return TickSummaryResponse(**summary.model_dump())


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: int = Query(None, description="Filter by target user ID"),
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).
    """
    logs = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        action=action,
        limit=limit
    )
    
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
