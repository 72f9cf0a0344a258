"""
Typed Exception Hierarchy for the MES Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A production board is driven by drag-and-drop callers that must tell the
operator *why* a transition was refused. Parsing message strings for that
is fragile, so every error here:

  1. Has its own class (catch by type, not by message)
  2. Carries a class-level CODE attribute (machine-readable, API-safe)
  3. Stores its context as attributes (item ids, quantities, stages)

Example - WRONG way to handle errors:
    try:
        engine.move(...)
    except Exception as e:
        if "not allowed" in str(e):
            ...

Example - RIGHT way:
    try:
        engine.move(...)
    except CategoryNotAllowedError as e:
        notify(f"{e.stage_name} does not accept {e.category}")
        api_response(code=e.code, stage=e.stage_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MesKernelError (base)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- StageNotFoundError
    |   +-- ProductNotFoundError
    |
    +-- TransitionError
    |   +-- InvalidQuantityError
    |   +-- CategoryNotAllowedError
    |   +-- NoMatchingBOMError
    |   +-- ItemNotActiveError
    |   +-- ChannelNotAllowedError
    |   +-- StageLogicMismatchError
    |   +-- AssemblyContainerError
    |
    +-- AuditError
    |   +-- DuplicateLogEntryError
    |   +-- ImmutabilityViolationError
    |
    +-- ConcurrencyError
    |   +-- StaleSnapshotError
    |
    +-- HistoryError
    |   +-- NothingToUndoError
    |
    +-- ConfigValidationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                     | When Raised
----------------|--------------------------|-------------------------------------------
Not found       | ITEM_NOT_FOUND           | Item id is not in the snapshot
                | STAGE_NOT_FOUND          | Stage id is not in the blueprint(s)
                | PRODUCT_NOT_FOUND        | Product SKU is not in the catalog
----------------|--------------------------|-------------------------------------------
Transition      | INVALID_QUANTITY         | qty <= 0 or qty > available
                | CATEGORY_NOT_ALLOWED     | Stage allow-list excludes the category
                | NO_MATCHING_BOM          | Component SKU not in the product's BOM
                | ITEM_NOT_ACTIVE          | Item is consumed / sold / rejected
                | CHANNEL_NOT_ALLOWED      | Sales channel not enabled on exit stage
                | STAGE_LOGIC_MISMATCH     | Stage logic type does not fit the operation
                | ASSEMBLY_CONTAINER_LOCKED| Move/split/sell/reject of a container
----------------|--------------------------|-------------------------------------------
Audit           | DUPLICATE_LOG_ENTRY      | Log entry id appended twice
                | IMMUTABILITY_VIOLATION   | UPDATE/DELETE on an activity log row
----------------|--------------------------|-------------------------------------------
Concurrency     | STALE_SNAPSHOT           | Transition computed on an old version
----------------|--------------------------|-------------------------------------------
History         | NOTHING_TO_UNDO          | Undo requested with an empty stack
----------------|--------------------------|-------------------------------------------
Config          | CONFIG_VALIDATION_FAILED | Blueprint / catalog YAML failed checks

===============================================================================
HANDLING PATTERNS
===============================================================================

Every TransitionError and NotFoundError is raised BEFORE the engine builds
any new state, so catching one never leaves a half-applied snapshot.
The service layer turns them into TransitionOutcome values:

    try:
        result = engine.split(...)
    except MesKernelError as e:
        return TransitionOutcome.failed(e.code, str(e))
"""


class MesKernelError(Exception):
    """
    Base exception for all MES kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MES_KERNEL_ERROR"


# Lookup failures


class NotFoundError(MesKernelError):
    """Base exception for references that do not resolve."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Kanban item with given id is not in the snapshot."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Kanban item not found: {item_id}")


class StageNotFoundError(NotFoundError):
    """Stage id does not exist in the workflow blueprint."""

    code: str = "STAGE_NOT_FOUND"

    def __init__(self, stage_id: str, blueprint_id: str | None = None):
        self.stage_id = stage_id
        self.blueprint_id = blueprint_id
        where = f" in blueprint {blueprint_id}" if blueprint_id else ""
        super().__init__(f"Stage not found{where}: {stage_id}")


class ProductNotFoundError(NotFoundError):
    """Product SKU is not in the master data catalog."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Product not found in catalog: {sku}")


# Transition validation failures


class TransitionError(MesKernelError):
    """Base exception for rejected transition requests."""

    code: str = "TRANSITION_ERROR"


class InvalidQuantityError(TransitionError):
    """Requested quantity is non-positive or exceeds what is available."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, item_id: str | None, requested: int, available: int | None, field: str = "quantity"):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        self.field = field
        if available is None:
            detail = f"{field} must be positive, got {requested}"
        else:
            detail = f"{field} must be in 1..{available}, got {requested}"
        target = f" for item {item_id}" if item_id else ""
        super().__init__(f"Invalid {field}{target}: {detail}")


class CategoryNotAllowedError(TransitionError):
    """Target stage's allow-list excludes the item's material category."""

    code: str = "CATEGORY_NOT_ALLOWED"

    def __init__(self, stage_id: str, stage_name: str, category: str, allowed: tuple[str, ...]):
        self.stage_id = stage_id
        self.stage_name = stage_name
        self.category = category
        self.allowed = allowed
        super().__init__(
            f"Stage {stage_name} does not accept {category} material "
            f"(allowed: {', '.join(allowed)})"
        )


class NoMatchingBOMError(TransitionError):
    """Component SKU does not appear in the product's bill of materials."""

    code: str = "NO_MATCHING_BOM"

    def __init__(self, component_sku: str | None, product_sku: str):
        self.component_sku = component_sku
        self.product_sku = product_sku
        super().__init__(
            f"Component {component_sku!r} is not part of the BOM of {product_sku}"
        )


class ItemNotActiveError(TransitionError):
    """Item is in a terminal status and cannot take part in a transition."""

    code: str = "ITEM_NOT_ACTIVE"

    def __init__(self, item_id: str, status: str):
        self.item_id = item_id
        self.status = status
        super().__init__(f"Kanban item {item_id} is {status}, not active")


class ChannelNotAllowedError(TransitionError):
    """Sales channel is not enabled on the exit stage."""

    code: str = "CHANNEL_NOT_ALLOWED"

    def __init__(self, stage_id: str, channel: str, enabled: tuple[str, ...]):
        self.stage_id = stage_id
        self.channel = channel
        self.enabled = enabled
        super().__init__(
            f"Channel {channel} is not enabled on stage {stage_id} "
            f"(enabled: {', '.join(enabled)})"
        )


class StageLogicMismatchError(TransitionError):
    """Target stage's logic type does not fit the requested transition."""

    code: str = "STAGE_LOGIC_MISMATCH"

    def __init__(self, stage_id: str, operation: str, logic_type: str):
        self.stage_id = stage_id
        self.operation = operation
        self.logic_type = logic_type
        super().__init__(
            f"Cannot {operation} into stage {stage_id} with logic type {logic_type}"
        )


class AssemblyContainerError(TransitionError):
    """Operation is not valid on an in-progress assembly container."""

    code: str = "ASSEMBLY_CONTAINER_LOCKED"

    def __init__(self, item_id: str, operation: str):
        self.item_id = item_id
        self.operation = operation
        super().__init__(
            f"Cannot {operation} assembly container {item_id}; "
            "its contents change only through allocation"
        )


# Audit trail


class AuditError(MesKernelError):
    """Base exception for activity trail errors."""

    code: str = "AUDIT_ERROR"


class DuplicateLogEntryError(AuditError):
    """The same log entry id was appended twice."""

    code: str = "DUPLICATE_LOG_ENTRY"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Activity log entry already recorded: {entry_id}")


class ImmutabilityViolationError(AuditError):
    """
    Attempted to modify or delete an immutable record.

    Activity log rows are append-only from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Concurrency


class ConcurrencyError(MesKernelError):
    """Base exception for snapshot serialisation errors."""

    code: str = "CONCURRENCY_ERROR"


class StaleSnapshotError(ConcurrencyError):
    """Transition was computed against an outdated snapshot version."""

    code: str = "STALE_SNAPSHOT"

    def __init__(self, expected_version: int, actual_version: int):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Snapshot version mismatch: expected {expected_version}, "
            f"current is {actual_version}"
        )


# Undo history


class HistoryError(MesKernelError):
    """Base exception for undo history errors."""

    code: str = "HISTORY_ERROR"


class NothingToUndoError(HistoryError):
    """Undo was requested but no prior snapshot is stored."""

    code: str = "NOTHING_TO_UNDO"

    def __init__(self) -> None:
        super().__init__("Nothing to undo")


# Configuration


class ConfigValidationError(MesKernelError):
    """Workflow configuration failed validation."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, set_name: str, errors: list[str]):
        self.set_name = set_name
        self.errors = errors
        super().__init__(
            f"Configuration set {set_name!r} failed validation: "
            f"{len(errors)} error(s): {'; '.join(errors)}"
        )
