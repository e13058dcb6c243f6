from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_tenant_id, get_tenant_session, require_module_permission, visibility_for
from src.repositories.sales import OrderRepository
from src.repositories.security import SecurityRepository
from src.schemas.sales import OrderRead, OrderUpdate
from src.services.modules import ORDER_OWNER, ORDERS
from src.services.record_guard import assert_visible
from src.services.visibility import VisibilityDecision

router = APIRouter(prefix="/orders", tags=["Orders"])

order_visibility = visibility_for(ORDERS)
order_write_visibility = visibility_for(ORDERS, transactional=True)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[OrderRead],
    summary="List orders",
    description="List orders handled by the current user's team, newest order date first.",
    dependencies=[Depends(require_module_permission(ORDERS, "read"))],
)
async def list_orders(
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(order_visibility),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[OrderRead]:
    repo = OrderRepository(session)
    records = await repo.list_orders(decision=decision, status=status_filter, limit=limit, offset=offset)
    return [OrderRead.model_validate(r) for r in records]


# PUBLIC_INTERFACE
@router.get(
    "/{order_id}",
    response_model=OrderRead,
    summary="Get order",
    description="Return one order. Responds 403 when it exists outside the user's visibility.",
    dependencies=[Depends(require_module_permission(ORDERS, "read"))],
)
async def get_order(
    order_id: int = Path(..., gt=0),
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(order_visibility),
) -> OrderRead:
    order = await OrderRepository(session).get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    assert_visible(order, decision, ORDER_OWNER)
    return OrderRead.model_validate(order)


# PUBLIC_INTERFACE
@router.patch(
    "/{order_id}",
    response_model=OrderRead,
    summary="Update order",
    description="Change status or reassign an order the user can see. The new handler must be an existing user.",
    dependencies=[Depends(require_module_permission(ORDERS, "update"))],
)
async def update_order(
    order_id: int = Path(..., gt=0),
    payload: OrderUpdate = ...,
    tenant_id: UUID = Depends(get_tenant_id),
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(order_write_visibility),
) -> OrderRead:
    repo = OrderRepository(session)
    order = await repo.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    assert_visible(order, decision, ORDER_OWNER)
    if payload.handled_by is not None:
        if not await SecurityRepository(session, tenant_id).get_user_by_id(payload.handled_by):
            raise HTTPException(status_code=400, detail="Assignee not found")
    updated = await repo.update_order(order_id, status=payload.status, handled_by=payload.handled_by)
    return OrderRead.model_validate(updated)
