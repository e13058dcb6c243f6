from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_tenant_session, require_module_permission, visibility_for
from src.repositories.sales import MarketingLeadRepository
from src.schemas.sales import MarketingLeadRead
from src.services.modules import MARKETING_LEAD_OWNER, MARKETING_LEADS
from src.services.record_guard import assert_visible
from src.services.visibility import VisibilityDecision

router = APIRouter(prefix="/marketing-leads", tags=["Marketing"])

lead_visibility = visibility_for(MARKETING_LEADS)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[MarketingLeadRead],
    summary="List marketing leads",
    description="List leads assigned to the current user's team.",
    dependencies=[Depends(require_module_permission(MARKETING_LEADS, "read"))],
)
async def list_leads(
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(lead_visibility),
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> List[MarketingLeadRead]:
    repo = MarketingLeadRepository(session)
    leads = await repo.list_leads(decision=decision, status=status_filter, limit=limit, offset=offset)
    return [MarketingLeadRead.model_validate(x) for x in leads]


# PUBLIC_INTERFACE
@router.get(
    "/{lead_id}",
    response_model=MarketingLeadRead,
    summary="Get marketing lead",
    dependencies=[Depends(require_module_permission(MARKETING_LEADS, "read"))],
)
async def get_lead(
    lead_id: int = Path(..., gt=0),
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(lead_visibility),
) -> MarketingLeadRead:
    lead = await MarketingLeadRepository(session).get_lead(lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    assert_visible(lead, decision, MARKETING_LEAD_OWNER)
    return MarketingLeadRead.model_validate(lead)
