"""
DocumentNumberService -- human document numbers via locked counter rows.

Responsibility:
    Allocates ``{PREFIX}-{YEAR}-{NNNNN}`` numbers (e.g. ``PO-2026-00042``).
    One counter row per prefix; the count restarts at 1 when the calendar
    year of the injected clock moves past the row's year.

Invariants enforced:
    - Numbers are unique per prefix and year.  The counter row is locked
      (``SELECT ... FOR UPDATE``); aggregate max-plus-one over documents is
      never used.
    - Transactional: a rolled-back allocation is returned to the counter.

Failure modes:
    - IntegrityError on concurrent first use of a prefix (handled via
      savepoint rollback and re-read).

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal_kernel.domain.clock import Clock, SystemClock
from portal_kernel.exceptions import NumberAllocationError
from portal_kernel.logging_config import get_logger
from portal_kernel.models.counter import DocumentCounterModel

logger = get_logger("services.number_service")


class DocumentNumberService:
    """Allocates yearly document numbers per prefix."""

    def __init__(self, session: Session, clock: Clock | None = None, width: int = 5):
        self._session = session
        self._clock = clock or SystemClock()
        self._width = width

    def next_number(self, prefix: str) -> str:
        year = self._clock.now().year
        counter = self._lock_counter(prefix)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = DocumentCounterModel(prefix=prefix, year=year, current_value=0)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
            except IntegrityError:
                logger.debug("document_counter_race_retry", extra={"prefix": prefix})
                savepoint.rollback()
                counter = self._lock_counter(prefix)
                if counter is None:
                    raise NumberAllocationError(prefix, "counter row missing after insert race")

        if counter.year != year:
            logger.info(
                "document_counter_year_reset",
                extra={"prefix": prefix, "from_year": counter.year, "to_year": year},
            )
            counter.year = year
            counter.current_value = 0

        counter.current_value += 1
        self._session.flush()

        number = f"{prefix}-{year}-{counter.current_value:0{self._width}d}"
        logger.debug("document_number_allocated", extra={"prefix": prefix, "number": number})
        return number

    def _lock_counter(self, prefix: str) -> DocumentCounterModel | None:
        return self._session.execute(
            select(DocumentCounterModel)
            .where(DocumentCounterModel.prefix == prefix)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
