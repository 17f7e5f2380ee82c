"""
Inventory Module (``portal_modules.inventory``).

Warehouse settings and in-memory inventory / BOM lookups that satisfy the
kernel collaborator protocols.
"""

from portal_modules.inventory.config import InventoryConfig
from portal_modules.inventory.lookups import StaticBomLookup, StaticInventory

__all__ = [
    "InventoryConfig",
    "StaticBomLookup",
    "StaticInventory",
]
