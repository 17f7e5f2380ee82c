"""Role groups shared by the workflow tables."""

from portal_kernel.domain.documents import Role

APPROVERS = (Role.ADMIN, Role.MANAGER)
PROCUREMENT_STAFF = (Role.ADMIN, Role.MANAGER, Role.PURCHASER)
SALES_STAFF = (Role.ADMIN, Role.MANAGER, Role.SALES)
PRODUCTION_STAFF = (Role.ADMIN, Role.MANAGER, Role.SALES, Role.WAREHOUSE)
RECEIVING_STAFF = (Role.ADMIN, Role.MANAGER, Role.PURCHASER, Role.WAREHOUSE)
ALL_STAFF = (Role.ADMIN, Role.MANAGER, Role.PURCHASER, Role.SALES, Role.WAREHOUSE)
