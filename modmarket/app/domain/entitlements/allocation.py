"""
Allocation reconciler.

Moves mods between a server's active set and the acting user's personal
storage (their ClaimedSlots). The two pieces of bookkeeping describe the same
physical slots and are always written together.

Batches are named by direction:
- ``to_server``: ids put onto the server from personal storage
- ``to_storage``: ids taken off the server back into personal storage
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from modmarket.app.core.exceptions import (
    EmptyBatchError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
    UserNotFoundError,
)
from modmarket.app.domain.catalog.resolver import CatalogResolver
from modmarket.app.domain.entitlements.codec import (
    ClaimedSlots,
    decode_claimed_slots,
    decode_mod_list,
    encode_claimed_slots,
    encode_mod_list,
)
from modmarket.app.models.server import Server
from modmarket.app.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class AllocationPlan:
    """Result of applying one allocation batch to in-memory state."""
    active_ids: List[int]
    slots: ClaimedSlots
    returned: List[int] = field(default_factory=list)
    consumed: List[int] = field(default_factory=list)


def plan_allocation(
    active_ids: Sequence[int],
    slots: ClaimedSlots,
    to_server: Iterable[int],
    to_storage: Iterable[int],
) -> AllocationPlan:
    """
    Compute the new active set and claimed-slot delta. Pure; mutates `slots`.
    
    1. An id put onto the server that the server does not already expose
       consumes one claim from personal storage (decrement).
    2. An id taken off the server that the server currently exposes goes
       back to personal storage (increment).
    3. New active set = (current - to_storage) | to_server, sorted.
    """
    current = set(active_ids)
    to_server = list(dict.fromkeys(to_server))
    to_storage = list(dict.fromkeys(to_storage))
    
    consumed = []
    for mod_id in to_server:
        if mod_id not in current:
            slots.decrement(mod_id)
            consumed.append(mod_id)
    
    returned = []
    for mod_id in to_storage:
        if mod_id in current:
            slots.increment(mod_id)
            returned.append(mod_id)
    
    new_active = (current - set(to_storage)) | set(to_server)
    return AllocationPlan(
        active_ids=sorted(new_active),
        slots=slots,
        returned=returned,
        consumed=consumed,
    )


class AllocationService:
    
    @staticmethod
    async def reconcile(
        db: AsyncSession,
        server_id: int,
        acting_user_id: int,
        to_server: Iterable[int],
        to_storage: Iterable[int],
    ) -> AllocationPlan:
        """
        Apply one allocation change for `acting_user_id` on `server_id`.
        
        Both rows are read with FOR UPDATE and written in the caller's
        transaction. Unknown mod ids are dropped silently.
        
        Raises:
            ResourceNotFoundError: server does not exist
            UserNotFoundError: acting user does not exist
            InsufficientPermissionsError: server belongs to someone else
            EmptyBatchError: nothing valid left in either batch
        """
        server = (
            await db.execute(select(Server).where(Server.id == server_id).with_for_update())
        ).scalar_one_or_none()
        if server is None:
            raise ResourceNotFoundError("Server", server_id)
        
        user = (
            await db.execute(select(User).where(User.id == acting_user_id).with_for_update())
        ).scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(acting_user_id)
        
        if server.owner_id != user.id:
            raise InsufficientPermissionsError("Server belongs to another user")
        
        to_server = list(to_server)
        to_storage = list(to_storage)
        known = await CatalogResolver.valid_mod_ids(db, to_server + to_storage)
        to_server = [mod_id for mod_id in to_server if mod_id in known]
        to_storage = [mod_id for mod_id in to_storage if mod_id in known]
        
        if not to_server and not to_storage:
            raise EmptyBatchError()
        
        plan = plan_allocation(
            decode_mod_list(server.mods),
            decode_claimed_slots(user.claimed_mods),
            to_server,
            to_storage,
        )
        
        server.mods = encode_mod_list(plan.active_ids)
        user.claimed_mods = encode_claimed_slots(plan.slots)
        await db.flush()
        
        logger.info(
            "Allocation changed",
            extra={
                "server_id": server.id,
                "user_id": user.id,
                "to_server": to_server,
                "to_storage": to_storage,
            }
        )
        return plan
