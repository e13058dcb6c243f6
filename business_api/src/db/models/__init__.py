"""
ORM models for tenants, users and roles, module access configuration, and the
business entities whose visibility is scoped by the reporting hierarchy.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .security import (  # noqa: F401
    Tenant,
    Role,
    User,
)
from .access import (  # noqa: F401
    Module,
    RoleModule,
)
from .sales import (  # noqa: F401
    Inquiry,
    Order,
    MarketingLead,
    DeliveryChallan,
)
