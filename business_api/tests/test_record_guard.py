from types import SimpleNamespace

import pytest

from src.core.errors import Forbidden
from src.services.modules import DELIVERY_CHALLAN_OWNER
from src.services.policy import Policy
from src.services.record_guard import assert_visible, filter_visible, owner_ids, read_path
from src.services.visibility import VisibilityDecision

TEAM = VisibilityDecision(policy=Policy.MY_TEAM, enforced_ids=frozenset({1, 2, 3}))


def test_unrestricted_passes_any_record():
    assert_visible(SimpleNamespace(handled_by=999), VisibilityDecision.allow_all(), "handled_by")
    assert_visible(SimpleNamespace(handled_by=None), VisibilityDecision.allow_all(), "handled_by")


def test_none_enforced_ids_passes():
    decision = VisibilityDecision(policy=Policy.MY_TEAM, enforced_ids=None)
    assert_visible(SimpleNamespace(handled_by=999), decision, "handled_by")


def test_empty_set_rejects_everything():
    with pytest.raises(Forbidden):
        assert_visible(SimpleNamespace(handled_by=1), VisibilityDecision.lockout(), "handled_by")


def test_owner_outside_team_is_forbidden_not_missing():
    with pytest.raises(Forbidden) as exc:
        assert_visible(SimpleNamespace(id=7, handled_by=4), TEAM, "handled_by")
    assert exc.value.status_code == 403
    assert exc.value.message == "Forbidden: you do not have access to this record"


def test_owner_inside_team_passes():
    assert_visible(SimpleNamespace(handled_by=3), TEAM, "handled_by")
    assert_visible(SimpleNamespace(handled_by="3"), TEAM, "handled_by")


def test_unowned_record_is_forbidden_for_team_scope():
    with pytest.raises(Forbidden):
        assert_visible(SimpleNamespace(handled_by=None), TEAM, "handled_by")


def test_challan_visible_through_linked_order():
    challan = SimpleNamespace(id=1, created_by=8, order=SimpleNamespace(handled_by=2))
    assert_visible(challan, TEAM, DELIVERY_CHALLAN_OWNER)


def test_challan_visible_through_creator_without_order():
    challan = SimpleNamespace(id=1, created_by=2, order=None)
    assert_visible(challan, TEAM, DELIVERY_CHALLAN_OWNER)


def test_challan_forbidden_when_no_owner_matches():
    challan = SimpleNamespace(id=1, created_by=8, order=SimpleNamespace(handled_by=9))
    with pytest.raises(Forbidden):
        assert_visible(challan, TEAM, DELIVERY_CHALLAN_OWNER)


def test_mapping_records():
    record = {"id": 5, "created_by": 8, "order": {"handled_by": 1}}
    assert read_path(record, "order.handled_by") == 1
    assert owner_ids(record, DELIVERY_CHALLAN_OWNER) == [8, 1]
    assert_visible(record, TEAM, DELIVERY_CHALLAN_OWNER)


def test_read_path_missing_links():
    assert read_path(SimpleNamespace(order=None), "order.handled_by") is None
    assert read_path(SimpleNamespace(), "order.handled_by") is None
    assert read_path({}, "handled_by") is None


def test_filter_visible():
    records = [SimpleNamespace(assigned_to=i) for i in (1, 4, 3, None)]
    kept = filter_visible(records, TEAM, "assigned_to")
    assert [r.assigned_to for r in kept] == [1, 3]
    assert filter_visible(records, VisibilityDecision.allow_all(), "assigned_to") == records
    assert filter_visible(records, VisibilityDecision.lockout(), "assigned_to") == []
