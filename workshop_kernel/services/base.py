"""
BaseRepository -- abstract base for all SQLAlchemy adapters.

Responsibility:
    Provides the common constructor and session-handling contract for
    every repository in the kernel.  Concrete repositories receive a
    SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Repositories
    translate between ORM rows (``workshop_kernel.models``) and domain
    objects (``workshop_kernel.domain``); neither side leaks into the other.

Invariants enforced:
    - Transaction boundaries: repositories flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope`` or the test harness) owns commit/rollback.
    - Write isolation: every write runs inside its own SAVEPOINT.  A write
      that fails at flush time unwinds only itself; earlier writes in the
      same transaction stay pending and the session stays usable.

Failure modes:
    - If a subclass calls ``session.commit()``, a coordinator operation
      could leave its primary transition durable while a later step is
      rolled back by the caller, breaking the unit of work.
"""

from abc import ABC
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workshop_kernel.db.base import Base
from workshop_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel repositories.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.  Domain objects rebuilt from rows receive ``clock``.

    Guarantees:
        - The repository never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``load`` returns ``None`` for unknown ids.
        - A failed write leaves the session in its pre-write state.
    """

    model: type[ModelType]

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Clock handed to rehydrated domain objects.
        """
        self.session = session
        self.clock = clock or SystemClock()

    def _get_record(self, record_id) -> ModelType | None:
        return self.session.get(self.model, record_id)

    @contextmanager
    def _savepoint(self) -> Iterator[None]:
        """
        Run the enclosed writes inside a SAVEPOINT and flush them.

        Record mutations must happen inside the block: ``begin_nested``
        flushes whatever is already pending before the SAVEPOINT is set.
        """
        savepoint = self.session.begin_nested()
        try:
            yield
            self.session.flush()
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise
