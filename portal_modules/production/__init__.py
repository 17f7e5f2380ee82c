"""
Production Module (``portal_modules.production``).

Job cards: assembly jobs that may only start once every required BOM
component is available at the job's warehouse.
"""

from portal_modules.production.config import ProductionConfig
from portal_modules.production.models import JobCardStatus
from portal_modules.production.workflows import JOB_CARD_WORKFLOW

__all__ = [
    "JOB_CARD_WORKFLOW",
    "JobCardStatus",
    "ProductionConfig",
]
