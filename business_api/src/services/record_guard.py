"""
Single-record visibility checks.

Handlers that load one record (get, update, delete) call assert_visible with
the same VisibilityDecision used for the module's list query, so a record that
would be filtered out of the list cannot be reached by id either.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, List, Sequence, Tuple, TypeVar, Union

from src.core.errors import Forbidden
from src.services.hierarchy import normalize_id
from src.services.visibility import VisibilityDecision

logger = logging.getLogger(__name__)

T = TypeVar("T")

OwnerFieldSpec = Union[str, Sequence[str]]


def _owner_paths(owner_field_spec: OwnerFieldSpec) -> Tuple[str, ...]:
    if isinstance(owner_field_spec, str):
        return (owner_field_spec,)
    return tuple(owner_field_spec)


# PUBLIC_INTERFACE
def read_path(record: Any, path: str) -> Any:
    """
    Follow a dotted path through attributes or mapping keys.

    Returns None as soon as a link is missing, e.g. read_path(challan,
    "order.handled_by") for a challan without an order.
    """
    value = record
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def owner_ids(record: Any, owner_field_spec: OwnerFieldSpec) -> List[int]:
    """Return the valid owner ids found on the record for the declared paths."""
    ids = []
    for path in _owner_paths(owner_field_spec):
        owner = normalize_id(read_path(record, path))
        if owner is not None:
            ids.append(owner)
    return ids


# PUBLIC_INTERFACE
def is_visible(record: Any, decision: VisibilityDecision, owner_field_spec: OwnerFieldSpec) -> bool:
    """Return True when the record passes assert_visible."""
    if decision.unrestricted:
        return True
    if not decision.enforced_ids:
        return False
    return any(owner in decision.enforced_ids for owner in owner_ids(record, owner_field_spec))


# PUBLIC_INTERFACE
def assert_visible(record: Any, decision: VisibilityDecision, owner_field_spec: OwnerFieldSpec) -> None:
    """
    Raise Forbidden unless the record is inside the caller's visibility scope.

    owner_field_spec is one field path or an OR-group of paths; any owner in
    decision.enforced_ids makes the record visible. Always 403, never 404.
    """
    if is_visible(record, decision, owner_field_spec):
        return
    logger.info(
        "Record %s denied: owners=%s not in scope",
        getattr(record, "id", None) if not isinstance(record, Mapping) else record.get("id"),
        owner_ids(record, owner_field_spec),
    )
    raise Forbidden()


# PUBLIC_INTERFACE
def filter_visible(
    records: Iterable[T], decision: VisibilityDecision, owner_field_spec: OwnerFieldSpec
) -> List[T]:
    """Keep only the records that pass assert_visible."""
    return [r for r in records if is_visible(r, decision, owner_field_spec)]
