"""
Module: mes_kernel.models.activity_log
Responsibility: ORM persistence for the production activity trail.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ (for DTO conversion) only.

Invariants enforced:
    - Rows are append-only; no UPDATE or DELETE (ORM listeners in
      db/immutability.py).
    - ``seq`` preserves insertion order independently of timestamps, so
      entries written within the same clock tick reload in order.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError on a duplicate entry id or seq.

Audit relevance:
    This table IS the board's audit trail: every move, split, assembly,
    sale, add, edit, delete, reject and undo leaves a row.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from mes_kernel.db.base import Base
from mes_kernel.domain.activity import ActivityLogEntry
from mes_kernel.domain.values import ActivityAction, StageLogicType


class ActivityLogModel(Base):
    """
    Immutable activity log row.

    Contract:
        Mirrors ``ActivityLogEntry``.  Written once, never changed.
    """

    __tablename__ = "activity_logs"

    __table_args__ = (
        Index("idx_activity_logs_timestamp", "timestamp"),
        Index("idx_activity_logs_item", "item_id"),
        Index("idx_activity_logs_action", "action"),
    )

    seq: Mapped[int] = mapped_column(nullable=False, unique=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    user: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    item_name: Mapped[str] = mapped_column(String(300), nullable=False)
    from_stage: Mapped[str | None] = mapped_column(String(200), nullable=True)
    to_stage: Mapped[str | None] = mapped_column(String(200), nullable=True)
    logic_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entry_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)
    item_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<ActivityLog {self.seq} {self.action} {self.item_name!r}>"

    def to_dto(self) -> ActivityLogEntry:
        return ActivityLogEntry(
            id=self.id,
            timestamp=self.timestamp,
            user=self.user,
            action=ActivityAction(self.action),
            item_name=self.item_name,
            from_stage=self.from_stage,
            to_stage=self.to_stage,
            logic_type=StageLogicType(self.logic_type),
            metadata=dict(self.entry_metadata or {}),
            item_id=self.item_id,
        )

    @classmethod
    def from_dto(cls, entry: ActivityLogEntry, seq: int) -> ActivityLogModel:
        return cls(
            id=entry.id,
            seq=seq,
            timestamp=entry.timestamp,
            user=entry.user,
            action=entry.action.value,
            item_name=entry.item_name,
            from_stage=entry.from_stage,
            to_stage=entry.to_stage,
            logic_type=entry.logic_type.value,
            entry_metadata=dict(entry.metadata),
            item_id=entry.item_id,
        )
