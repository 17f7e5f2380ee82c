"""
Production Domain Models.

Job card statuses.  A job card carries a single line: the finished
product being assembled and the quantity to build.  ``location`` is the
warehouse its components are drawn from.
"""

from enum import Enum


class JobCardStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
