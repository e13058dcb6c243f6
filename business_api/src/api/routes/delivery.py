from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_tenant_session, require_module_permission_any, visibility_for
from src.repositories.sales import DeliveryChallanRepository
from src.schemas.sales import DeliveryChallanRead
from src.services.modules import DELIVERY_CHALLAN_OWNER, DELIVERY_CHALLANS, ORDERS
from src.services.record_guard import assert_visible
from src.services.visibility import VisibilityDecision

router = APIRouter(prefix="/delivery-challans", tags=["Delivery"])

challan_visibility = visibility_for(DELIVERY_CHALLANS)

# Challans are also reachable from the order screens.
challan_read_permission = require_module_permission_any(DELIVERY_CHALLANS, ORDERS, action="read")


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[DeliveryChallanRead],
    summary="List delivery challans",
    description=(
        "List challans created by the user's team or linked to an order the team handles."
    ),
    dependencies=[Depends(challan_read_permission)],
)
async def list_challans(
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(challan_visibility),
    order_id: Optional[int] = Query(None, gt=0, description="Filter by order"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[DeliveryChallanRead]:
    repo = DeliveryChallanRepository(session)
    challans = await repo.list_challans(decision=decision, order_id=order_id, limit=limit, offset=offset)
    return [DeliveryChallanRead.model_validate(c) for c in challans]


# PUBLIC_INTERFACE
@router.get(
    "/{challan_id}",
    response_model=DeliveryChallanRead,
    summary="Get delivery challan",
    dependencies=[Depends(challan_read_permission)],
)
async def get_challan(
    challan_id: int = Path(..., gt=0),
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(challan_visibility),
) -> DeliveryChallanRead:
    challan = await DeliveryChallanRepository(session).get_challan(challan_id)
    if not challan:
        raise HTTPException(status_code=404, detail="Delivery challan not found")
    assert_visible(challan, decision, DELIVERY_CHALLAN_OWNER)
    return DeliveryChallanRead.model_validate(challan)
