"""
Document number counter (``portal_kernel.models.counter``).

One row per document prefix (SO, PO, JC, RA, PR).  The count resets when
the calendar year changes.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from portal_kernel.db.base import Base


class DocumentCounterModel(Base):
    """Counter row for human document numbers."""

    __tablename__ = "document_counters"

    prefix: Mapped[str] = mapped_column(String(10), nullable=False, unique=True)
    year: Mapped[int] = mapped_column(nullable=False)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
