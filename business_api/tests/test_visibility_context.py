from types import SimpleNamespace

import pytest

from src.services.hierarchy import OrgNode
from src.services.modules import HOME, ORDERS
from src.services.policy import ModuleRef, Policy
from src.services.visibility import VisibilityContext, VisibilityDecision, resolve_visibility
from src.services.visibility_cache import VisibilityCache

from conftest import TENANT_A, TENANT_B, CountingDirectory, InMemoryPolicyStore, SAMPLE_ORG, ScriptedSession, role_module

ADMIN_ROLE = 1
SALES_ROLE = 2


@pytest.fixture
def store():
    return InMemoryPolicyStore(
        modules=[
            {"id": 10, "route": "/order", "key": "pending_orders"},
            {"id": 20, "route": "/home", "key": "home"},
        ],
        role_modules={
            (ADMIN_ROLE, 10): role_module("all"),
            (SALES_ROLE, 10): role_module("my_team"),
            (SALES_ROLE, 20): role_module("All"),
        },
    )


def make_ctx(store, directory, cache=None, tenant_id=TENANT_A):
    return VisibilityContext(
        None,
        tenant_id,
        cache or VisibilityCache(),
        policy_store=store,
        directory=directory,
    )


def user(user_id, role_id):
    return SimpleNamespace(id=user_id, role_id=role_id)


@pytest.mark.asyncio
async def test_all_policy_is_unrestricted_and_skips_directory(store, directory):
    ctx = make_ctx(store, directory)
    decision = await ctx.resolve(user(2, ADMIN_ROLE), ORDERS)
    assert decision == VisibilityDecision.allow_all()
    assert decision.enforced_ids is None
    assert decision.unrestricted
    assert directory.calls == 0


@pytest.mark.asyncio
async def test_my_team_returns_team(store, directory):
    ctx = make_ctx(store, directory)
    decision = await ctx.resolve(user(2, SALES_ROLE), ORDERS)
    assert decision.policy is Policy.MY_TEAM
    assert decision.enforced_ids == frozenset({2, 4})
    assert not decision.unrestricted


@pytest.mark.asyncio
async def test_same_user_different_modules(store, directory):
    ctx = make_ctx(store, directory)
    assert (await ctx.resolve(user(2, SALES_ROLE), HOME)).unrestricted
    assert not (await ctx.resolve(user(2, SALES_ROLE), ORDERS)).unrestricted


@pytest.mark.asyncio
async def test_team_is_cached_between_requests(store, directory):
    cache = VisibilityCache()
    await make_ctx(store, directory, cache).resolve(user(1, SALES_ROLE), ORDERS)
    again = await make_ctx(store, directory, cache).resolve(user(1, SALES_ROLE), ORDERS)
    assert again.enforced_ids == frozenset({1, 2, 3, 4})
    assert directory.calls == 1
    assert cache.has(TENANT_A, 1)


@pytest.mark.asyncio
async def test_cache_is_per_tenant(store):
    cache = VisibilityCache()
    dir_a = CountingDirectory(SAMPLE_ORG)
    dir_b = CountingDirectory([])
    a = await make_ctx(store, dir_a, cache, TENANT_A).resolve(user(1, SALES_ROLE), ORDERS)
    b = await make_ctx(store, dir_b, cache, TENANT_B).resolve(user(1, SALES_ROLE), ORDERS)
    assert a.enforced_ids == frozenset({1, 2, 3, 4})
    assert b.enforced_ids == frozenset({1})


@pytest.mark.asyncio
async def test_manager_change_visible_after_invalidation(store):
    cache = VisibilityCache()
    directory = CountingDirectory(SAMPLE_ORG)
    first = await make_ctx(store, directory, cache).resolve(user(2, SALES_ROLE), ORDERS)
    assert first.enforced_ids == frozenset({2, 4})

    # 3 now reports to 2
    directory.nodes = [n for n in SAMPLE_ORG if n.user_id != 3] + [OrgNode(3, 2)]
    cache.invalidate_user(2)
    second = await make_ctx(store, directory, cache).resolve(user(2, SALES_ROLE), ORDERS)
    assert second.enforced_ids == frozenset({2, 3, 4})


@pytest.mark.asyncio
@pytest.mark.parametrize("user_id", [None, 0, "abc"])
async def test_invalid_user_id_is_locked_out(store, directory, user_id):
    decision = await make_ctx(store, directory).resolve(user(user_id, SALES_ROLE), ORDERS)
    assert decision == VisibilityDecision.lockout()
    assert decision.enforced_ids == frozenset()
    assert directory.calls == 0


@pytest.mark.asyncio
async def test_invalid_user_id_with_all_policy_is_unrestricted(store, directory):
    decision = await make_ctx(store, directory).resolve(user(None, ADMIN_ROLE), ORDERS)
    assert decision.unrestricted


@pytest.mark.asyncio
async def test_unconfigured_module_falls_back_to_team(store, directory):
    decision = await make_ctx(store, directory).resolve(user(2, ADMIN_ROLE), ModuleRef(route="/unknown"))
    assert decision.policy is Policy.MY_TEAM
    assert decision.enforced_ids == frozenset({2, 4})


@pytest.mark.asyncio
async def test_directory_failure_propagates_and_caches_nothing(store):
    class BrokenDirectory:
        async def list_org_nodes(self):
            raise ConnectionError("db down")

    cache = VisibilityCache()
    with pytest.raises(ConnectionError):
        await make_ctx(store, BrokenDirectory(), cache).resolve(user(2, SALES_ROLE), ORDERS)
    assert cache.size == 0


@pytest.mark.asyncio
async def test_transaction_reads_through_it_and_bypasses_cache(store, directory):
    cache = VisibilityCache()
    await make_ctx(store, directory, cache).resolve(user(2, SALES_ROLE), ORDERS)
    assert cache.has(TENANT_A, 2)

    rows = [SimpleNamespace(id=2, manager_id=None), SimpleNamespace(id=9, manager_id=2)]
    transaction = ScriptedSession(role_module("my_team"), rows)
    ctx = make_ctx(store, directory, cache)
    decision = await ctx.resolve(user(2, SALES_ROLE), ModuleRef(module_id=10), transaction=transaction)

    assert decision.enforced_ids == frozenset({2, 9})
    assert len(transaction.statements) == 2
    assert "users.tenant_id" in str(transaction.statements[1])
    assert directory.calls == 1
    # the cached team from the first request is untouched
    assert (await ctx.team_for(2)) == frozenset({2, 4})


@pytest.mark.asyncio
async def test_resolve_visibility_helper_uses_session_repositories():
    session = ScriptedSession(10, role_module("all"))
    decision = await resolve_visibility(session, TENANT_A, VisibilityCache(), user(2, SALES_ROLE), ORDERS)
    assert decision.unrestricted
    assert len(session.statements) == 2
