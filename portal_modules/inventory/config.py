"""
Inventory Configuration Schema.

Warehouses known to the portal.  Reorder reports and BOM checks are run
per warehouse.
"""

from dataclasses import dataclass

from portal_kernel.exceptions import ValidationError
from portal_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.config")


@dataclass(frozen=True)
class InventoryConfig:
    """Configuration schema for the inventory module."""

    warehouses: tuple[str, ...] = ("JHB", "CT")

    def __post_init__(self) -> None:
        if not self.warehouses:
            raise ValueError("At least one warehouse must be configured")
        if len(set(self.warehouses)) != len(self.warehouses):
            logger.warning(
                "inventory_config_invalid",
                extra={"field": "warehouses", "value": list(self.warehouses)},
            )
            raise ValueError(f"Duplicate warehouse codes: {self.warehouses}")

    def require_warehouse(self, code: str, field: str = "location") -> str:
        """Return ``code`` if it is a configured warehouse."""
        if code not in self.warehouses:
            raise ValidationError(
                field, f"unknown warehouse {code!r}; expected one of {self.warehouses}",
            )
        return code
