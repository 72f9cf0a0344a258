"""
Kernel Invariants Contract.

These invariants are structural law for the production board. No blueprint
configuration or caller request may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the transition engine, the activity log
value type, the ORM immutability listeners and the workflow service.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    QUANTITY_CONSERVATION = "quantity_conservation"
    """Quantity removed from one item reappears in a new item, an existing
    item, or a terminal status. Split yields and assembly completions are
    the only sanctioned ratio changes. Enforced by TransitionEngine and
    checked by mes_engines.conservation."""

    NO_PARTIAL_TRANSITION = "no_partial_transition"
    """A transition either returns a complete new snapshot or raises before
    building anything. Enforced by validate-then-build ordering in every
    engine operation."""

    TERMINAL_STATUS = "terminal_status"
    """Consumed, sold and rejected items never become active again and are
    retained for audit. Only an explicit delete erases an item."""

    ZERO_IS_TERMINAL = "zero_is_terminal"
    """A batch of zero quantity is never active. Enforced by KanbanItem
    construction."""

    APPEND_ONLY_LOG = "append_only_log"
    """Activity log entries are never edited or removed; corrections are new
    entries. Enforced by ActivityLog and mes_kernel.db.immutability."""

    STAGE_ID_UNIQUE = "stage_id_unique"
    """Stage ids are unique within a blueprint. Enforced by
    WorkflowBlueprint construction and mes_config.validator."""

    SERIAL_APPLICATION = "serial_application"
    """Transitions are applied one at a time against the latest snapshot.
    Enforced by WorkflowService's writer lock and version check."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "mes_engines",
    "mes_services",
    "mes_config",
)
