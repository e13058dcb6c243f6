"""
Module references and owner fields of the business modules.

Each module resolves visibility through the same VisibilityContext; this table
is the only per-module configuration.
"""
from __future__ import annotations

from src.services.policy import ModuleRef

HOME = ModuleRef(route="/home", key="home")
INQUIRIES = ModuleRef(route="/inquiry", key="inquiry")
ORDERS = ModuleRef(route="/order", key="pending_orders")
MARKETING_LEADS = ModuleRef(route="/marketing-leads", key="marketing_leads")
DELIVERY_CHALLANS = ModuleRef(route="/delivery-challans", key="delivery_challans")
USERS = ModuleRef(route="/user-master", key="user_master")
ROLE_MODULES = ModuleRef(route="/role-module", key="role_module")

INQUIRY_OWNER = "handled_by"
ORDER_OWNER = "handled_by"
MARKETING_LEAD_OWNER = "assigned_to"
# A challan belongs to its creator and to whoever handles the linked order.
DELIVERY_CHALLAN_OWNER = ("created_by", "order.handled_by")
