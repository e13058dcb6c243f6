from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class InquiryRead(BaseModel):
    """Inquiry read model."""
    id: int = Field(..., description="Inquiry ID")
    inquiry_number: str = Field(...)
    customer_name: str = Field(...)
    status: Optional[str] = Field(None)
    date_of_inquiry: Optional[date] = Field(None)
    handled_by: Optional[int] = Field(None, description="Owning user")
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    """Order read model."""
    id: int = Field(..., description="Order ID")
    order_number: str = Field(...)
    customer_name: str = Field(...)
    status: Optional[str] = Field(None)
    order_date: Optional[date] = Field(None)
    total_amount: Optional[float] = Field(None)
    handled_by: Optional[int] = Field(None, description="Owning user")
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    class Config:
        from_attributes = True


class OrderUpdate(BaseModel):
    """Order update payload."""
    status: Optional[str] = Field(None)
    handled_by: Optional[int] = Field(None, gt=0, description="Reassign the order")


class MarketingLeadRead(BaseModel):
    """Marketing lead read model."""
    id: int = Field(..., description="Lead ID")
    lead_name: str = Field(...)
    mobile_number: Optional[str] = Field(None)
    status: Optional[str] = Field(None)
    assigned_to: Optional[int] = Field(None, description="Owning user")
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    class Config:
        from_attributes = True


class DeliveryChallanRead(BaseModel):
    """Delivery challan read model."""
    id: int = Field(..., description="Challan ID")
    challan_number: str = Field(...)
    challan_date: Optional[date] = Field(None)
    order_id: Optional[int] = Field(None)
    created_by: Optional[int] = Field(None)
    created_at: datetime = Field(...)
    updated_at: datetime = Field(...)

    class Config:
        from_attributes = True


class HomeSummary(BaseModel):
    """Dashboard counters scoped by the home module's listing criteria."""
    inquiries: int = Field(0)
    orders: int = Field(0)
    marketing_leads: int = Field(0)
