import os
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

# Keep app import free of database side effects.
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")
os.environ.setdefault("AUTO_SEED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from src.services.hierarchy import OrgNode  # noqa: E402

TENANT_A = "6f1c1d1e-0000-4000-8000-00000000000a"
TENANT_B = "6f1c1d1e-0000-4000-8000-00000000000b"

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def org(*edges: Tuple[Any, Any]) -> List[OrgNode]:
    return [OrgNode(user_id=u, manager_id=m) for u, m in edges]


# 1 manages 2 and 3, 2 manages 4, 5 reports to a user that does not exist.
SAMPLE_ORG = org((1, None), (2, 1), (3, 1), (4, 2), (5, 99))


class CountingDirectory:
    """Org snapshot source that counts reads."""

    def __init__(self, nodes: Sequence[OrgNode]) -> None:
        self.nodes = list(nodes)
        self.calls = 0

    async def list_org_nodes(self) -> List[OrgNode]:
        self.calls += 1
        return list(self.nodes)


class InMemoryPolicyStore:
    """Modules and role-module rows held in dicts."""

    def __init__(
        self,
        modules: Optional[List[Dict[str, Any]]] = None,
        role_modules: Optional[Dict[Tuple[int, int], Any]] = None,
    ) -> None:
        self.modules = modules or []
        self.role_modules = role_modules or {}
        self.lookups: List[Tuple[Tuple[str, ...], Optional[str]]] = []

    async def find_module_id(self, *, routes=(), key=None):
        self.lookups.append((tuple(routes), key))
        for module in sorted(self.modules, key=lambda m: m["id"]):
            if module.get("deleted"):
                continue
            if module.get("route") in routes or (key is not None and module.get("key") == key):
                return module["id"]
        return None

    async def get_role_module(self, role_id, module_id):
        return self.role_modules.get((role_id, module_id))


def role_module(listing_criteria="my_team", *, read=True, create=False, update=False, delete=False):
    return SimpleNamespace(
        listing_criteria=listing_criteria,
        can_read=read,
        can_create=create,
        can_update=update,
        can_delete=delete,
    )


class ScriptedResult:
    def __init__(self, value: Any) -> None:
        self.value = value

    def scalar_one_or_none(self):
        return self.value

    def scalar_one(self):
        return self.value

    def scalars(self):
        return iter(self.value or [])

    def __iter__(self):
        return iter(self.value or [])


class ScriptedSession:
    """
    Stand-in for AsyncSession returning queued results in call order and
    recording every executed statement.
    """

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.statements: List[Any] = []
        self.commits = 0

    async def execute(self, statement, params=None):
        self.statements.append(statement)
        value = self.results.pop(0) if self.results else None
        return ScriptedResult(value)

    async def commit(self):
        self.commits += 1

    def add(self, entity):
        pass

    def add_all(self, entities):
        pass


def make_user(user_id=1, role_id=1, manager_id=None, **extra):
    values = dict(
        id=user_id,
        email=f"user{user_id}@acme.com",
        full_name=f"User {user_id}",
        is_active=True,
        role_id=role_id,
        manager_id=manager_id,
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(extra)
    return SimpleNamespace(**values)


def make_order(order_id=7, handled_by=4, **extra):
    values = dict(
        id=order_id,
        order_number=f"SO-{order_id}",
        customer_name="Globex",
        status="pending",
        order_date=None,
        total_amount=None,
        handled_by=handled_by,
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(extra)
    return SimpleNamespace(**values)


@pytest.fixture
def directory():
    return CountingDirectory(SAMPLE_ORG)
