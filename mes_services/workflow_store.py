"""
mes_services.workflow_store -- persistence collaborator for the board.

Responsibility:
    Load the item snapshot and the activity trail, and write back the diff
    one transition produced.  ``WorkflowStore`` is the protocol the service
    depends on; ``SqlWorkflowStore`` is the SQLAlchemy implementation over
    ``KanbanItemModel`` / ``ActivityLogModel``.

Architecture position:
    Services -- imperative shell.  Reads go through ``BoardSelector``;
    writes go through the ORM models.  The store flushes but never
    commits: the caller owns the transaction boundary.

Invariants enforced:
    - The trail is append-only: entries are added with a monotonically
      increasing ``seq`` and never updated or deleted (the ORM listeners in
      ``mes_kernel.db.immutability`` refuse both).
    - ``persist_result`` writes exactly the items whose value changed,
      deletes exactly the items that vanished, and appends every entry.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from sqlalchemy.orm import Session

from mes_engines.transitions import TransitionResult
from mes_kernel.domain.activity import ActivityLog, ActivityLogEntry
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.exceptions import ItemNotFoundError
from mes_kernel.logging_config import get_logger
from mes_kernel.models.activity_log import ActivityLogModel
from mes_kernel.models.kanban_item import KanbanItemModel
from mes_kernel.selectors.board_selector import BoardSelector

logger = get_logger("services.workflow_store")


@runtime_checkable
class WorkflowStore(Protocol):
    """What the workflow service needs from persistence."""

    def load_items(self) -> tuple[KanbanItem, ...]: ...

    def load_logs(self) -> ActivityLog: ...

    def save_item(self, item: KanbanItem) -> None: ...

    def delete_item(self, item_id: str) -> None: ...

    def append_log(self, entry: ActivityLogEntry) -> None: ...


class SqlWorkflowStore:
    """
    SQLAlchemy-backed ``WorkflowStore``.

    Contract:
        Upserts items by id, deletes rows on request, appends log rows with
        the next ``seq``.  Every write is flushed; commit is left to the
        session owner.
    """

    def __init__(self, session: Session):
        self._session = session
        self._selector = BoardSelector(session)

    def load_items(self) -> tuple[KanbanItem, ...]:
        return self._selector.items()

    def load_logs(self) -> ActivityLog:
        return self._selector.log()

    def save_item(self, item: KanbanItem) -> None:
        row = self._session.get(KanbanItemModel, item.id)
        if row is None:
            self._session.add(KanbanItemModel.from_dto(item))
        else:
            row.apply_dto(item)
        self._session.flush()

    def delete_item(self, item_id: str) -> None:
        row = self._session.get(KanbanItemModel, item_id)
        if row is None:
            raise ItemNotFoundError(item_id)
        self._session.delete(row)
        self._session.flush()

    def append_log(self, entry: ActivityLogEntry) -> None:
        seq = self._selector.last_log_seq() + 1
        self._session.add(ActivityLogModel.from_dto(entry, seq))
        self._session.flush()
        logger.debug("log_appended", extra={"entry_id": entry.id, "seq": seq})


def persist_result(
    store: WorkflowStore,
    before: Sequence[KanbanItem],
    result: TransitionResult,
) -> None:
    """Write the difference between ``before`` and ``result`` to ``store``."""
    previous = {item.id: item for item in before}
    current_ids = set()
    saved = 0
    for item in result.items:
        current_ids.add(item.id)
        if previous.get(item.id) != item:
            store.save_item(item)
            saved += 1
    removed = [item_id for item_id in previous if item_id not in current_ids]
    for item_id in removed:
        store.delete_item(item_id)
    for entry in result.logs:
        store.append_log(entry)

    logger.info(
        "transition_persisted",
        extra={"saved_items": saved, "deleted_items": len(removed), "log_entries": len(result.logs)},
    )
