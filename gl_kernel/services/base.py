"""
BaseService -- abstract base for kernel services that write.

Services receive a SQLAlchemy ``Session`` from the caller and persist
through ``session.flush()``, never ``session.commit()``.  The caller
(GLPostingService via ``session_scope()``, or a test) owns the unit of
work, so that header, entries and balance updates of one posting commit
or roll back together.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-model queries; those belong in
          ``gl_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
