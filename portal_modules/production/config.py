"""
Production Configuration Schema.

BOM settings used by the job card readiness check.
"""

from dataclasses import dataclass

from portal_kernel.logging_config import get_logger

logger = get_logger("modules.production.config")


@dataclass(frozen=True)
class ProductionConfig:
    """Configuration schema for the production module."""

    # Deepest BOM level expanded when checking component stock
    bom_max_depth: int = 10

    # When False, job cards may start regardless of component stock
    enforce_bom_ready: bool = True

    def __post_init__(self) -> None:
        if self.bom_max_depth < 1:
            logger.warning(
                "production_config_invalid",
                extra={"field": "bom_max_depth", "value": self.bom_max_depth},
            )
            raise ValueError(f"bom_max_depth must be >= 1, got {self.bom_max_depth}")
