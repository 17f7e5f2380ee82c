"""
Procurement Configuration Schema.

Settings for purchase order creation and reorder-report batch generation.
Values come from ``portal_config.get_active_config().procurement``.
"""

from dataclasses import dataclass, field

from portal_kernel.domain.documents import Role
from portal_kernel.logging_config import get_logger
from portal_modules.roles import PROCUREMENT_STAFF

logger = get_logger("modules.procurement.config")


@dataclass(frozen=True)
class ProcurementConfig:
    """
    Configuration schema for the procurement module.

        config = ProcurementConfig(default_delivery_location="JHB")
    """

    # Roles allowed to turn a reorder report into draft purchase orders
    batch_roles: frozenset[Role] = field(default_factory=lambda: frozenset(PROCUREMENT_STAFF))

    # Used when the batch caller does not name a delivery location
    default_delivery_location: str | None = None

    # Header note on generated purchase orders; {count} is the item count
    batch_note_template: str = "generated from reorder report, {count} items"

    def __post_init__(self) -> None:
        if not self.batch_roles:
            logger.warning("procurement_config_invalid", extra={"field": "batch_roles"})
            raise ValueError("batch_roles must name at least one role")
        if "{count}" not in self.batch_note_template:
            raise ValueError("batch_note_template must contain {count}")

    def batch_note(self, count: int) -> str:
        return self.batch_note_template.format(count=count)
