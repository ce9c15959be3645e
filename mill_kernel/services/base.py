"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service.  Services use ``session.flush()`` and never
    ``session.commit()``; the caller (ProductionRecorder, ``session_scope``
    or a test harness) owns commit and rollback.

Failure modes:
    - A subclass that commits breaks the atomicity of paired and batch
      shift writes.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from mill_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only listing and statistics belong in ``mill_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
