from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_tenant_session, require_module_permission, visibility_for
from src.repositories.sales import InquiryRepository, MarketingLeadRepository, OrderRepository
from src.schemas.sales import HomeSummary
from src.services.modules import HOME
from src.services.visibility import VisibilityDecision

router = APIRouter(prefix="/home", tags=["Home"])

home_visibility = visibility_for(HOME)


# PUBLIC_INTERFACE
@router.get(
    "/summary",
    response_model=HomeSummary,
    summary="Dashboard counters",
    description="Counts of inquiries, orders and leads, scoped by the home module's listing criteria.",
    dependencies=[Depends(require_module_permission(HOME, "read"))],
)
async def home_summary(
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(home_visibility),
) -> HomeSummary:
    """
    Return dashboard counters.

    The dashboard uses one decision for every counter, so a role with 'all' on
    the home module sees tenant-wide totals even if it is team-scoped elsewhere.
    """
    return HomeSummary(
        inquiries=await InquiryRepository(session).count_inquiries(decision=decision),
        orders=await OrderRepository(session).count_orders(decision=decision),
        marketing_leads=await MarketingLeadRepository(session).count_leads(decision=decision),
    )
