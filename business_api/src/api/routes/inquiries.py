from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.deps import get_tenant_session, require_module_permission, visibility_for
from src.repositories.sales import InquiryRepository
from src.schemas.sales import InquiryRead
from src.services.modules import INQUIRIES, INQUIRY_OWNER
from src.services.record_guard import assert_visible
from src.services.visibility import VisibilityDecision

router = APIRouter(prefix="/inquiries", tags=["Inquiries"])

inquiry_visibility = visibility_for(INQUIRIES)
inquiry_write_visibility = visibility_for(INQUIRIES, transactional=True)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[InquiryRead],
    summary="List inquiries",
    description="List inquiries handled by the current user's team, or all inquiries for roles with 'all' listing.",
    dependencies=[Depends(require_module_permission(INQUIRIES, "read"))],
)
async def list_inquiries(
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(inquiry_visibility),
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    search: Optional[str] = Query(None, description="Match customer name or inquiry number"),
    limit: int = Query(100, ge=1, le=1000, description="Max records"),
    offset: int = Query(0, ge=0, description="Records to skip"),
) -> List[InquiryRead]:
    repo = InquiryRepository(session)
    records = await repo.list_inquiries(
        decision=decision, status=status_filter, search=search, limit=limit, offset=offset
    )
    return [InquiryRead.model_validate(r) for r in records]


# PUBLIC_INTERFACE
@router.get(
    "/{inquiry_id}",
    response_model=InquiryRead,
    summary="Get inquiry",
    description="Return one inquiry. Responds 403 when it exists outside the user's visibility.",
    dependencies=[Depends(require_module_permission(INQUIRIES, "read"))],
)
async def get_inquiry(
    inquiry_id: int = Path(..., gt=0),
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(inquiry_visibility),
) -> InquiryRead:
    inquiry = await InquiryRepository(session).get_inquiry(inquiry_id)
    if not inquiry:
        raise HTTPException(status_code=404, detail="Inquiry not found")
    assert_visible(inquiry, decision, INQUIRY_OWNER)
    return InquiryRead.model_validate(inquiry)


# PUBLIC_INTERFACE
@router.delete(
    "/{inquiry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete inquiry",
    dependencies=[Depends(require_module_permission(INQUIRIES, "delete"))],
)
async def delete_inquiry(
    inquiry_id: int = Path(..., gt=0),
    session: AsyncSession = Depends(get_tenant_session),
    decision: VisibilityDecision = Depends(inquiry_write_visibility),
) -> None:
    repo = InquiryRepository(session)
    inquiry = await repo.get_inquiry(inquiry_id)
    if not inquiry:
        raise HTTPException(status_code=404, detail="Inquiry not found")
    assert_visible(inquiry, decision, INQUIRY_OWNER)
    await repo.soft_delete_inquiry(inquiry_id)
