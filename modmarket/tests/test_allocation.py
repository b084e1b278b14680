"""
Tests for moving mods between a server and personal storage.
"""

import pytest

from modmarket.app.core.exceptions import (
    EmptyBatchError,
    InsufficientPermissionsError,
    ResourceNotFoundError,
)
from modmarket.app.domain.entitlements.allocation import AllocationService, plan_allocation
from modmarket.app.domain.entitlements.codec import ClaimedSlots, decode_mod_list


def test_plan_put_and_take():
    slots = ClaimedSlots({4: 1})
    plan = plan_allocation([1, 2, 3], slots, to_server=[4], to_storage=[2])
    
    assert plan.active_ids == [1, 3, 4]
    assert plan.slots == {2: 1}
    assert plan.consumed == [4]
    assert plan.returned == [2]


def test_plan_put_already_active_consumes_nothing():
    slots = ClaimedSlots({1: 2})
    plan = plan_allocation([1], slots, to_server=[1], to_storage=[])
    
    assert plan.active_ids == [1]
    assert plan.slots == {1: 2}
    assert plan.consumed == []


def test_plan_take_inactive_returns_nothing():
    plan = plan_allocation([1], ClaimedSlots(), to_server=[], to_storage=[5])
    
    assert plan.active_ids == [1]
    assert len(plan.slots) == 0
    assert plan.returned == []


def test_plan_duplicates_in_batch_count_once():
    plan = plan_allocation([], ClaimedSlots({7: 3}), to_server=[7, 7], to_storage=[])
    
    assert plan.active_ids == [7]
    assert plan.slots == {7: 2}


def test_plan_put_without_claim_leaves_slots_untouched():
    plan = plan_allocation([], ClaimedSlots(), to_server=[6], to_storage=[])
    
    assert plan.active_ids == [6]
    assert len(plan.slots) == 0


async def test_reconcile_persists_both_sides(db_session, make_user, make_server, catalog):
    owner = await make_user("owner", claimed_mods="3[1]")
    server = await make_server(owner, mods="1,2")
    
    plan = await AllocationService.reconcile(db_session, server.id, owner.id, to_server=[3], to_storage=[1])
    await db_session.commit()
    
    assert plan.active_ids == [2, 3]
    await db_session.refresh(server)
    await db_session.refresh(owner)
    assert server.mods == "2,3"
    assert owner.claimed_mods == "1[1]"


async def test_reconcile_drops_unknown_mod_ids(db_session, make_user, make_server, catalog):
    owner = await make_user("owner")
    server = await make_server(owner, mods="1")
    
    plan = await AllocationService.reconcile(db_session, server.id, owner.id, to_server=[999], to_storage=[1])
    await db_session.commit()
    
    assert plan.active_ids == []
    assert plan.slots == {1: 1}


async def test_reconcile_only_unknown_ids_is_rejected(db_session, make_user, make_server, catalog):
    owner = await make_user("owner")
    server = await make_server(owner, mods="1")
    
    with pytest.raises(EmptyBatchError):
        await AllocationService.reconcile(db_session, server.id, owner.id, to_server=[998], to_storage=[999])
    
    await db_session.refresh(server)
    assert decode_mod_list(server.mods) == [1]


async def test_reconcile_foreign_server_is_forbidden(db_session, make_user, make_server, catalog):
    owner = await make_user("owner")
    intruder = await make_user("intruder", claimed_mods="2[1]")
    server = await make_server(owner, mods="1")
    
    with pytest.raises(InsufficientPermissionsError):
        await AllocationService.reconcile(db_session, server.id, intruder.id, to_server=[2], to_storage=[])


async def test_reconcile_missing_server(db_session, make_user, catalog):
    owner = await make_user("owner")
    
    with pytest.raises(ResourceNotFoundError):
        await AllocationService.reconcile(db_session, 404, owner.id, to_server=[1], to_storage=[])
