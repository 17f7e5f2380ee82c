"""
PortalConfig schema.

The typed form of a configuration set.  YAML files under
``portal_config/sets/`` are parsed into these frozen dataclasses by the
loader; module sections reuse the module config dataclasses so their
``__post_init__`` validation runs on load.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from portal_kernel.domain.documents import DocumentKind
from portal_modules.inventory.config import InventoryConfig
from portal_modules.procurement.config import ProcurementConfig
from portal_modules.production.config import ProductionConfig

DEFAULT_PREFIXES: Mapping[DocumentKind, str] = {
    DocumentKind.SALES_ORDER: "SO",
    DocumentKind.PURCHASE_ORDER: "PO",
    DocumentKind.JOB_CARD: "JC",
    DocumentKind.RETURN_AUTHORIZATION: "RA",
    DocumentKind.PURCHASE_REQUISITION: "PR",
}


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False


@dataclass(frozen=True)
class NumberingConfig:
    """Document number format: ``{prefix}-{year}-{count:0{width}d}``."""

    prefixes: Mapping[DocumentKind, str] = field(default_factory=lambda: dict(DEFAULT_PREFIXES))
    width: int = 5

    def __post_init__(self) -> None:
        missing = [kind.value for kind in DocumentKind if kind not in self.prefixes]
        if missing:
            raise ValueError(f"Numbering prefixes missing for: {', '.join(missing)}")
        if len(set(self.prefixes.values())) != len(self.prefixes):
            raise ValueError("Numbering prefixes must be unique")
        if not 1 <= self.width <= 10:
            raise ValueError(f"Numbering width must be between 1 and 10, got {self.width}")

    def prefix_for(self, kind: DocumentKind) -> str:
        return self.prefixes[kind]


@dataclass(frozen=True)
class PortalConfig:
    """A complete, validated configuration set."""

    config_id: str
    version: int
    checksum: str
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    procurement: ProcurementConfig = field(default_factory=ProcurementConfig)
    production: ProductionConfig = field(default_factory=ProductionConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
