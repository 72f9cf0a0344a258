"""
Append-only guard for the persisted activity trail.

Mapper events on ``ActivityLogModel`` fire during ``session.flush()``,
before any UPDATE or DELETE reaches the database, and raise
``ImmutabilityViolationError`` so the flush aborts.  Undo writes a new
``undone`` row; nothing ever rewrites an old one.

``create_tables()`` registers the guard.  Tests that tear the schema down
call ``unregister_immutability_listeners()`` first.
"""

from sqlalchemy import event

from mes_kernel.exceptions import ImmutabilityViolationError
from mes_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_ENTITY = "ActivityLog"


def _refuse(operation: str, target) -> None:
    logger.error(
        "activity_log_write_blocked",
        extra={"entry_id": str(target.id), "operation": operation},
    )
    raise ImmutabilityViolationError(
        entity_type=_ENTITY,
        entity_id=str(target.id),
        reason=f"activity log entries are append-only ({operation} refused)",
    )


def _block_update(mapper, connection, target):
    _refuse("UPDATE", target)


def _block_delete(mapper, connection, target):
    _refuse("DELETE", target)


_GUARDS = (("before_update", _block_update), ("before_delete", _block_delete))


def register_immutability_listeners():
    """Install the guard.  Safe to call more than once."""
    from mes_kernel.models.activity_log import ActivityLogModel

    for name, listener in _GUARDS:
        if not event.contains(ActivityLogModel, name, listener):
            event.listen(ActivityLogModel, name, listener)


def unregister_immutability_listeners():
    """Remove the guard (test teardown only)."""
    from mes_kernel.models.activity_log import ActivityLogModel

    for name, listener in _GUARDS:
        if event.contains(ActivityLogModel, name, listener):
            event.remove(ActivityLogModel, name, listener)
