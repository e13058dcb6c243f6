from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import aliased

from src.db.models.sales import DeliveryChallan, Inquiry, MarketingLead, Order
from .base import BaseRepository, owner_scope

if TYPE_CHECKING:
    from src.services.visibility import VisibilityDecision


class InquiryRepository(BaseRepository):
    """Repository for inquiries; owner column is handled_by."""

    async def list_inquiries(
        self,
        *,
        decision: Optional[VisibilityDecision],
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Inquiry]:
        stmt = select(Inquiry).where(Inquiry.deleted_at.is_(None))
        if status:
            stmt = stmt.where(Inquiry.status == status)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(or_(Inquiry.customer_name.ilike(like), Inquiry.inquiry_number.ilike(like)))
        stmt = owner_scope(stmt, [Inquiry.handled_by], decision)
        stmt = stmt.order_by(Inquiry.id.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def count_inquiries(self, *, decision: Optional[VisibilityDecision]) -> int:
        stmt = select(func.count(Inquiry.id)).where(Inquiry.deleted_at.is_(None))
        stmt = owner_scope(stmt, [Inquiry.handled_by], decision)
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def get_inquiry(self, inquiry_id: int) -> Optional[Inquiry]:
        stmt = select(Inquiry).where(Inquiry.id == inquiry_id, Inquiry.deleted_at.is_(None))
        return await self.scalar_one_or_none(stmt)

    async def soft_delete_inquiry(self, inquiry_id: int) -> None:
        stmt = update(Inquiry).where(Inquiry.id == inquiry_id).values(deleted_at=func.now())
        await self.execute(stmt)
        await self.commit()


class OrderRepository(BaseRepository):
    """Repository for orders; owner column is handled_by."""

    async def list_orders(
        self,
        *,
        decision: Optional[VisibilityDecision],
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        stmt = select(Order).where(Order.deleted_at.is_(None))
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = owner_scope(stmt, [Order.handled_by], decision)
        stmt = stmt.order_by(Order.order_date.desc().nullslast(), Order.id.desc())
        stmt = stmt.offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def count_orders(self, *, decision: Optional[VisibilityDecision]) -> int:
        stmt = select(func.count(Order.id)).where(Order.deleted_at.is_(None))
        stmt = owner_scope(stmt, [Order.handled_by], decision)
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def get_order(self, order_id: int) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id, Order.deleted_at.is_(None))
        return await self.scalar_one_or_none(stmt)

    async def update_order(
        self,
        order_id: int,
        *,
        status: Optional[str] = None,
        handled_by: Optional[int] = None,
    ) -> Optional[Order]:
        values = {}
        if status is not None:
            values["status"] = status
        if handled_by is not None:
            values["handled_by"] = handled_by
        if values:
            stmt = (
                update(Order)
                .where(Order.id == order_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
            await self.commit()
        return await self.get_order(order_id)


class MarketingLeadRepository(BaseRepository):
    """Repository for marketing leads; owner column is assigned_to."""

    async def list_leads(
        self,
        *,
        decision: Optional[VisibilityDecision],
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MarketingLead]:
        stmt = select(MarketingLead).where(MarketingLead.deleted_at.is_(None))
        if status:
            stmt = stmt.where(MarketingLead.status == status)
        stmt = owner_scope(stmt, [MarketingLead.assigned_to], decision)
        stmt = stmt.order_by(MarketingLead.id.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def count_leads(self, *, decision: Optional[VisibilityDecision]) -> int:
        stmt = select(func.count(MarketingLead.id)).where(MarketingLead.deleted_at.is_(None))
        stmt = owner_scope(stmt, [MarketingLead.assigned_to], decision)
        result = await self.execute(stmt)
        return int(result.scalar_one())

    async def get_lead(self, lead_id: int) -> Optional[MarketingLead]:
        stmt = select(MarketingLead).where(MarketingLead.id == lead_id, MarketingLead.deleted_at.is_(None))
        return await self.scalar_one_or_none(stmt)


class DeliveryChallanRepository(BaseRepository):
    """Repository for delivery challans; owned by created_by OR the linked order's handled_by."""

    async def list_challans(
        self,
        *,
        decision: Optional[VisibilityDecision],
        order_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[DeliveryChallan]:
        linked_order = aliased(Order)
        stmt = (
            select(DeliveryChallan)
            .outerjoin(linked_order, DeliveryChallan.order_id == linked_order.id)
            .where(DeliveryChallan.deleted_at.is_(None))
        )
        if order_id is not None:
            stmt = stmt.where(DeliveryChallan.order_id == order_id)
        stmt = owner_scope(stmt, [DeliveryChallan.created_by, linked_order.handled_by], decision)
        stmt = stmt.order_by(DeliveryChallan.id.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def get_challan(self, challan_id: int) -> Optional[DeliveryChallan]:
        stmt = select(DeliveryChallan).where(
            DeliveryChallan.id == challan_id, DeliveryChallan.deleted_at.is_(None)
        )
        return await self.scalar_one_or_none(stmt)
