"""
Module: hr_workflow.selectors.base
Responsibility: Base class for read-only record queries.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    Selectors never create, modify, or delete data.

Invariants enforced:
    - The caller owns the session and its transaction; selectors never
      add, flush, or commit.
    - Public methods return frozen domain DTOs, not ORM instances.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from hr_workflow.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the caller's session for subclass queries."""

    def __init__(self, session: Session):
        self.session = session
