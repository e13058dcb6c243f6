import asyncio

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.api.routes import delivery as delivery_routes
from src.api.routes import home as home_routes
from src.api.routes import orders as order_routes
from src.api.routes import users as user_routes
from src.core import deps
from src.core.errors import Forbidden
from src.services.policy import Policy, PolicyResolver
from src.services.visibility import VisibilityContext, VisibilityDecision
from src.services.visibility_cache import VisibilityCache

from conftest import (
    SAMPLE_ORG,
    TENANT_A,
    CountingDirectory,
    InMemoryPolicyStore,
    make_order,
    make_user,
    role_module,
)

HEADERS = {"X-Tenant-ID": TENANT_A}
TEAM = VisibilityDecision(policy=Policy.MY_TEAM, enforced_ids=frozenset({1, 2, 3}))


class AllowAll:
    """PolicyResolver stand-in granting every module action."""

    def __init__(self, store):
        pass

    async def assert_module_permission(self, role_id, module_ref, action="read"):
        return role_module("all", read=True, create=True, update=True, delete=True)

    async def assert_module_permission_any(self, role_id, module_refs, action="read"):
        return role_module("all", read=True, create=True, update=True, delete=True)


class DenyAll(AllowAll):
    async def assert_module_permission(self, role_id, module_ref, action="read"):
        raise Forbidden("Forbidden: module access not assigned to role")

    async def assert_module_permission_any(self, role_id, module_refs, action="read"):
        raise Forbidden("Forbidden: insufficient permissions for this action")


class FakeOrderRepository:
    orders = {}
    last_decision = None

    def __init__(self, session):
        pass

    async def get_order(self, order_id):
        return self.orders.get(order_id)

    async def list_orders(self, *, decision, status=None, limit=100, offset=0):
        FakeOrderRepository.last_decision = decision
        return list(self.orders.values())

    async def update_order(self, order_id, *, status=None, handled_by=None):
        order = self.orders[order_id]
        if status is not None:
            order.status = status
        if handled_by is not None:
            order.handled_by = handled_by
        return order


class FakeSecurityRepository:
    users = {}
    roles = {1, 5}
    updates = []

    def __init__(self, session, tenant_id=None):
        self.tenant_id = tenant_id

    async def get_role_by_id(self, role_id):
        return role_id if role_id in self.roles else None

    async def get_user_by_id(self, user_id):
        return self.users.get(user_id)

    async def update_user(self, user_id, *, full_name=None, is_active=None, **links):
        FakeSecurityRepository.updates.append(links)
        user = self.users.get(user_id)
        if user is None:
            return None
        for name, value in links.items():
            setattr(user, name, value)
        return user

    async def soft_delete_user(self, user_id):
        self.users.pop(user_id, None)


async def _no_session():
    yield None


@pytest.fixture
def current_user():
    return make_user(user_id=2, role_id=5)


@pytest.fixture
def client(monkeypatch, current_user):
    app.state.visibility_cache = VisibilityCache()
    app.dependency_overrides[deps.get_tenant_session] = _no_session
    app.dependency_overrides[deps.get_current_active_user] = lambda: current_user
    monkeypatch.setattr(deps, "PolicyResolver", AllowAll)
    monkeypatch.setattr(order_routes, "OrderRepository", FakeOrderRepository)
    monkeypatch.setattr(user_routes, "SecurityRepository", FakeSecurityRepository)
    monkeypatch.setattr(order_routes, "SecurityRepository", FakeSecurityRepository)
    FakeOrderRepository.orders = {7: make_order(7, handled_by=4), 8: make_order(8, handled_by=3)}
    FakeSecurityRepository.users = {
        1: make_user(1),
        2: make_user(2, manager_id=1),
        4: make_user(4, manager_id=2),
    }
    FakeSecurityRepository.updates = []
    yield TestClient(app)
    app.dependency_overrides.clear()


def seed_cache(cache, *roots):
    async def fill():
        for root in roots:
            await cache.get_team(TENANT_A, root, lambda: _team(root))

    asyncio.run(fill())


async def _team(root):
    return frozenset({root})


def use_decision(dependency, decision):
    app.dependency_overrides[dependency] = lambda: decision


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["message"] == "Healthy"
    assert "X-Correlation-ID" in response.headers


def test_out_of_scope_record_is_403_with_envelope(client):
    use_decision(order_routes.order_visibility, TEAM)
    response = client.get("/api/v1/orders/7", headers={**HEADERS, "X-Correlation-ID": "abc"})
    assert response.status_code == 403
    body = response.json()
    assert body["error"]["type"] == "forbidden"
    assert body["error"]["message"] == "Forbidden: you do not have access to this record"
    assert body["correlation_id"] == "abc"
    assert body["tenant_id"] == TENANT_A


def test_in_scope_record_is_returned(client):
    use_decision(order_routes.order_visibility, TEAM)
    response = client.get("/api/v1/orders/8", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["handled_by"] == 3


def test_missing_record_is_404(client):
    use_decision(order_routes.order_visibility, TEAM)
    response = client.get("/api/v1/orders/99", headers=HEADERS)
    assert response.status_code == 404
    assert response.json()["error"]["type"] == "http_error"


def test_unrestricted_decision_sees_any_record(client):
    use_decision(order_routes.order_visibility, VisibilityDecision.allow_all())
    assert client.get("/api/v1/orders/7", headers=HEADERS).status_code == 200


def test_update_is_guarded_with_write_decision(client):
    use_decision(order_routes.order_write_visibility, TEAM)
    denied = client.patch("/api/v1/orders/7", json={"status": "closed"}, headers=HEADERS)
    assert denied.status_code == 403
    allowed = client.patch("/api/v1/orders/8", json={"status": "closed"}, headers=HEADERS)
    assert allowed.status_code == 200
    assert allowed.json()["status"] == "closed"


def test_list_receives_decision(client):
    use_decision(order_routes.order_visibility, TEAM)
    response = client.get("/api/v1/orders", headers=HEADERS)
    assert response.status_code == 200
    assert FakeOrderRepository.last_decision is TEAM


def test_module_permission_denied(client, monkeypatch):
    monkeypatch.setattr(deps, "PolicyResolver", DenyAll)
    use_decision(order_routes.order_visibility, VisibilityDecision.allow_all())
    response = client.get("/api/v1/orders/8", headers=HEADERS)
    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Forbidden: module access not assigned to role"


def test_lockout_blocks_challan_detail(client, monkeypatch):
    class Repo:
        def __init__(self, session):
            pass

        async def get_challan(self, challan_id):
            return make_order(challan_id, created_by=2, order=None)

    monkeypatch.setattr(delivery_routes, "DeliveryChallanRepository", Repo)
    use_decision(delivery_routes.challan_visibility, VisibilityDecision.lockout())
    assert client.get("/api/v1/delivery-challans/3", headers=HEADERS).status_code == 403


def test_home_summary_counts_with_home_decision(client, monkeypatch):
    seen = []

    class Counting:
        def __init__(self, session):
            pass

        async def count_inquiries(self, *, decision):
            seen.append(decision)
            return 1

        async def count_orders(self, *, decision):
            seen.append(decision)
            return 2

        async def count_leads(self, *, decision):
            seen.append(decision)
            return 3

    for name in ("InquiryRepository", "OrderRepository", "MarketingLeadRepository"):
        monkeypatch.setattr(home_routes, name, Counting)
    use_decision(home_routes.home_visibility, TEAM)

    response = client.get("/api/v1/home/summary", headers=HEADERS)
    assert response.json() == {"inquiries": 1, "orders": 2, "marketing_leads": 3}
    assert seen == [TEAM, TEAM, TEAM]


def test_own_visibility_through_real_context(client, current_user):
    store = InMemoryPolicyStore(
        modules=[{"id": 10, "route": "/order", "key": "pending_orders"}],
        role_modules={(current_user.role_id, 10): role_module("my_team")},
    )
    directory = CountingDirectory(SAMPLE_ORG)
    app.dependency_overrides[deps.get_visibility_context] = lambda: VisibilityContext(
        None, TENANT_A, app.state.visibility_cache, policy_store=store, directory=directory
    )

    response = client.get("/api/v1/visibility", params={"route": "order"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["policy"] == "my_team"
    assert response.json()["enforced_ids"] == [2, 4]
    assert response.json()["can_read"] is True
    assert response.json()["can_update"] is False

    client.get("/api/v1/visibility", params={"key": "pending_orders"}, headers=HEADERS)
    assert directory.calls == 1
    assert app.state.visibility_cache.has(TENANT_A, 2)


def test_manager_change_evicts_cached_team(client):
    cache = app.state.visibility_cache
    seed_cache(cache, 4, 2)

    response = client.patch("/api/v1/admin/users/4", json={"manager_id": 1}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["manager_id"] == 1
    assert not cache.has(TENANT_A, 4)
    # the previous manager's entry is left alone
    assert cache.has(TENANT_A, 2)


def test_name_change_keeps_cached_team(client):
    cache = app.state.visibility_cache
    seed_cache(cache, 4)
    response = client.patch("/api/v1/admin/users/4", json={"full_name": "Renamed"}, headers=HEADERS)
    assert response.status_code == 200
    assert cache.has(TENANT_A, 4)


def test_self_management_is_rejected(client):
    response = client.patch("/api/v1/admin/users/4", json={"manager_id": 4}, headers=HEADERS)
    assert response.status_code == 400


def test_delete_user_evicts_cached_team(client):
    cache = app.state.visibility_cache
    seed_cache(cache, 4)
    response = client.delete("/api/v1/admin/users/4", headers=HEADERS)
    assert response.status_code == 204
    assert not cache.has(TENANT_A, 4)


def test_clear_cache_endpoint(client):
    cache = app.state.visibility_cache
    seed_cache(cache, 1, 2)

    response = client.post("/api/v1/admin/visibility-cache/clear", params={"user_id": 1}, headers=HEADERS)
    assert response.json() == {"evicted": 1}
    response = client.post("/api/v1/admin/visibility-cache/clear", headers=HEADERS)
    assert response.json() == {"evicted": 1}
    assert cache.size == 0


def test_missing_tenant_header_is_400():
    response = TestClient(app).get("/api/v1/orders")
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "X-Tenant-ID header is required."


def test_patch_unknown_manager_is_400(client):
    response = client.patch("/api/v1/admin/users/4", json={"manager_id": 999}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Manager not found"
    assert FakeSecurityRepository.updates == []
    assert FakeSecurityRepository.users[4].manager_id == 2


def test_patch_unknown_role_is_400(client):
    response = client.patch("/api/v1/admin/users/4", json={"role_id": 77}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Role not found"


def test_patch_clearing_manager_skips_lookup(client):
    response = client.patch("/api/v1/admin/users/4", json={"manager_id": None}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["manager_id"] is None


def test_order_reassign_to_unknown_user_is_400(client):
    use_decision(order_routes.order_write_visibility, TEAM)
    response = client.patch("/api/v1/orders/8", json={"handled_by": 999}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Assignee not found"
    assert FakeOrderRepository.orders[8].handled_by == 3


def test_order_reassign_to_existing_user(client):
    use_decision(order_routes.order_write_visibility, TEAM)
    response = client.patch("/api/v1/orders/8", json={"handled_by": 4}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["handled_by"] == 4


def test_user_without_role_is_401(client, current_user):
    current_user.role_id = None
    use_decision(order_routes.order_visibility, VisibilityDecision.allow_all())
    response = client.get("/api/v1/orders/8", headers=HEADERS)
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Unauthorized"


class ChallanRepo:
    def __init__(self, session):
        pass

    async def list_challans(self, *, decision, order_id=None, limit=100, offset=0):
        return []


def use_policy_store(monkeypatch, store):
    monkeypatch.setattr(deps, "PolicyResolver", lambda repo: PolicyResolver(store))


def test_challans_readable_through_order_permission(client, monkeypatch, current_user):
    store = InMemoryPolicyStore(
        modules=[
            {"id": 10, "route": "/order", "key": "pending_orders"},
            {"id": 30, "route": "/delivery-challans", "key": "delivery_challans"},
        ],
        role_modules={(current_user.role_id, 10): role_module("my_team")},
    )
    use_policy_store(monkeypatch, store)
    monkeypatch.setattr(delivery_routes, "DeliveryChallanRepository", ChallanRepo)
    use_decision(delivery_routes.challan_visibility, TEAM)

    response = client.get("/api/v1/delivery-challans", headers=HEADERS)
    assert response.status_code == 200
    assert response.json() == []


def test_challans_denied_without_any_module_permission(client, monkeypatch, current_user):
    store = InMemoryPolicyStore(
        modules=[{"id": 10, "route": "/order", "key": "pending_orders"}],
        role_modules={(current_user.role_id, 10): role_module("my_team", read=False)},
    )
    use_policy_store(monkeypatch, store)
    monkeypatch.setattr(delivery_routes, "DeliveryChallanRepository", ChallanRepo)
    use_decision(delivery_routes.challan_visibility, TEAM)

    response = client.get("/api/v1/delivery-challans", headers=HEADERS)
    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Forbidden: insufficient permissions for this action"
