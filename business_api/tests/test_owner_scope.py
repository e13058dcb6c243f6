from uuid import UUID

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from src.db.models.sales import DeliveryChallan, Inquiry, Order
from src.repositories.access import AccessRepository
from src.repositories.base import owner_scope
from src.repositories.directory import DirectoryRepository
from src.repositories.sales import DeliveryChallanRepository, InquiryRepository, OrderRepository
from src.repositories.security import SecurityRepository
from src.services.policy import Policy
from src.services.visibility import VisibilityDecision

from conftest import TENANT_A, TENANT_B, ScriptedSession

TEAM = VisibilityDecision(policy=Policy.MY_TEAM, enforced_ids=frozenset({4, 2}))


def sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))


def test_unrestricted_leaves_statement_untouched():
    base = select(Order)
    assert sql(owner_scope(base, [Order.handled_by], VisibilityDecision.allow_all())) == sql(base)
    assert sql(owner_scope(base, [Order.handled_by], None)) == sql(base)


def test_empty_team_matches_nothing():
    stmt = owner_scope(select(Order), [Order.handled_by], VisibilityDecision.lockout())
    assert "WHERE false" in sql(stmt)


def test_team_becomes_in_predicate():
    stmt = owner_scope(select(Inquiry), [Inquiry.handled_by], TEAM)
    assert "inquiries.handled_by IN (2, 4)" in sql(stmt)


def test_several_owner_columns_are_or_ed():
    stmt = owner_scope(select(DeliveryChallan), [DeliveryChallan.created_by, Order.handled_by], TEAM)
    compiled = sql(stmt)
    assert "delivery_challans.created_by IN (2, 4) OR orders.handled_by IN (2, 4)" in compiled


@pytest.mark.asyncio
async def test_inquiry_list_is_scoped_and_soft_delete_aware():
    session = ScriptedSession([])
    await InquiryRepository(session).list_inquiries(decision=TEAM, status="open", search="acme")
    compiled = sql(session.statements[0])
    assert "inquiries.deleted_at IS NULL" in compiled
    assert "inquiries.handled_by IN (2, 4)" in compiled
    assert "inquiries.status = 'open'" in compiled


@pytest.mark.asyncio
async def test_order_count_with_lockout():
    session = ScriptedSession(0)
    assert await OrderRepository(session).count_orders(decision=VisibilityDecision.lockout()) == 0
    assert "false" in sql(session.statements[0])


@pytest.mark.asyncio
async def test_challan_list_joins_linked_order():
    session = ScriptedSession([])
    await DeliveryChallanRepository(session).list_challans(decision=TEAM)
    compiled = sql(session.statements[0])
    assert "LEFT OUTER JOIN orders AS orders_1" in compiled
    assert "delivery_challans.created_by IN (2, 4) OR orders_1.handled_by IN (2, 4)" in compiled


@pytest.mark.asyncio
async def test_single_record_lookup_is_not_owner_scoped():
    session = ScriptedSession(None)
    assert await OrderRepository(session).get_order(7) is None
    assert "handled_by IN" not in sql(session.statements[0])


def compiled_with_params(stmt):
    compiled = stmt.compile(dialect=postgresql.dialect())
    return str(compiled), list(compiled.params.values())


def test_org_snapshot_is_tenant_scoped():
    text, params = compiled_with_params(DirectoryRepository(None, TENANT_A).org_nodes_statement())
    assert "users.tenant_id = " in text
    assert "users.deleted_at IS NULL" in text
    assert UUID(TENANT_A) in params


@pytest.mark.asyncio
async def test_org_snapshot_read_carries_tenant():
    session = ScriptedSession([])
    assert await DirectoryRepository(session, TENANT_B).list_org_nodes() == []
    text, params = compiled_with_params(session.statements[0])
    assert "users.tenant_id = " in text
    assert UUID(TENANT_B) in params


@pytest.mark.asyncio
async def test_policy_lookups_carry_tenant():
    session = ScriptedSession(10, None)
    repo = AccessRepository(session, TENANT_A)
    await repo.find_module_id(routes=["/order"], key="pending_orders")
    await repo.get_role_module(3, 10)
    for stmt in session.statements:
        text, params = compiled_with_params(stmt)
        assert "tenant_id = " in text
        assert UUID(TENANT_A) in params


@pytest.mark.asyncio
async def test_user_lookup_carries_tenant():
    session = ScriptedSession(None)
    assert await SecurityRepository(session, TENANT_A).get_user_by_id(999) is None
    text, params = compiled_with_params(session.statements[0])
    assert "users.tenant_id = " in text
    assert UUID(TENANT_A) in params


def test_unbound_repository_adds_no_tenant_predicate():
    stmt = AccessRepository(None).in_tenant(select(Order), Order)
    assert "tenant_id" not in sql(stmt)
