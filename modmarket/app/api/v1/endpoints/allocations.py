"""
Server Allocation API Endpoints.

Moves owned mods between a server and the owner's personal storage.
"""

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.db.session import get_db, unit_of_work
from modmarket.app.core.dependencies import get_current_user
from modmarket.app.domain.entitlements.allocation import AllocationService
from modmarket.app.schemas.marketplace import AllocationRequest, AllocationResponse
from modmarket.app.services.audit import log_event, AuditAction

router = APIRouter(prefix="/servers", tags=["Allocations"])


@router.post("/{server_id}/allocations", response_model=AllocationResponse)
async def change_allocation(
    body: AllocationRequest,
    request: Request,
    server_id: int = Path(..., description="Server ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Put mods onto the server (`to_server`) and take mods off it (`to_storage`).
    
    The server's active list and the caller's claimed slots are updated in
    one transaction.
    """
    async with unit_of_work(db):
        plan = await AllocationService.reconcile(
            db,
            server_id=server_id,
            acting_user_id=current_user["user_id"],
            to_server=body.to_server,
            to_storage=body.to_storage,
        )
    
    await log_event(
        db=db,
        action=AuditAction.ALLOCATION_CHANGED,
        actor=current_user,
        metadata={
            "server_id": server_id,
            "to_server": plan.consumed,
            "to_storage": plan.returned,
        },
        ip_address=request.client.host if request.client else None
    )
    
    return AllocationResponse(
        server_id=server_id,
        active_mods=plan.active_ids,
        claimed_mods=plan.slots.as_dict(),
    )
