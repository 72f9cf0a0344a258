"""
Module: mes_kernel.selectors.base
Responsibility: Common parent of the read side over the board's tables.

Selectors query through a caller-owned Session and hand back frozen domain
values (``KanbanItem``, ``ActivityLogEntry``), never ORM rows.  They never
add, delete, flush or commit; writes belong to ``SqlWorkflowStore``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from mes_kernel.db.base import Base

RowT = TypeVar("RowT", bound=Base)


class BaseSelector(ABC, Generic[RowT]):
    def __init__(self, session: Session):
        self.session = session
