from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import BigInteger, Date, ForeignKey, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.db.base import Base, IntPkMixin, SoftDeleteMixin, TenantMixin, TimestampMixin


class Inquiry(IntPkMixin, TenantMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Customer inquiry; owned by the handling user."""
    __tablename__ = "inquiries"

    inquiry_number: Mapped[str] = mapped_column(Text, nullable=False)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date_of_inquiry: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    handled_by: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )


class Order(IntPkMixin, TenantMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Confirmed customer order; owned by the handling user."""
    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(Text, nullable=False)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(Numeric(18, 2), nullable=True)
    handled_by: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )


class MarketingLead(IntPkMixin, TenantMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Marketing lead; owned by the assignee."""
    __tablename__ = "marketing_leads"

    lead_name: Mapped[str] = mapped_column(Text, nullable=False)
    mobile_number: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_to: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )


class DeliveryChallan(IntPkMixin, TenantMixin, TimestampMixin, SoftDeleteMixin, Base):
    """
    Delivery challan issued against an order.

    Ownership is shared: the creator, or whoever handles the linked order.
    """
    __tablename__ = "delivery_challans"

    challan_number: Mapped[str] = mapped_column(Text, nullable=False)
    challan_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    order: Mapped[Optional["Order"]] = relationship("Order", lazy="selectin")
