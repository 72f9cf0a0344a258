"""
Workflow blueprint types (``mes_kernel.domain.blueprint``).

Responsibility
--------------
Pure value objects describing a production pipeline: an ordered list of
stages, each carrying the processing logic that applies when an item
enters it and an optional material-category allow-list.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Stage ids are unique within a blueprint (construction-time check).
* ``default_yield`` and ``merge_input_count`` are positive when set.
* ``exit_channels`` appear only on exit stages.
* ``order`` is display-only; transitions address stages by id.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from mes_kernel.domain.values import MaterialCategory, SalesChannel, StageLogicType
from mes_kernel.exceptions import StageNotFoundError


@dataclass(frozen=True)
class WorkflowStage:
    """One node in a production pipeline.

    Contract: frozen.  ``allowed_material_categories=None`` means the stage
    accepts any category.
    Guarantees: id and name are non-empty; logic-specific fields are only
    meaningful on stages of that logic type.
    """
    id: str
    name: str
    order: int
    logic_type: StageLogicType
    allowed_material_categories: frozenset[MaterialCategory] | None = None
    default_yield: int | None = None
    merge_input_count: int | None = None
    exit_channels: tuple[SalesChannel, ...] = ()
    emoji: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Stage id must not be empty")
        if not self.name:
            raise ValueError(f"Stage {self.id} must have a name")
        if self.default_yield is not None and self.default_yield < 1:
            raise ValueError(
                f"Stage {self.id}: default_yield must be >= 1, got {self.default_yield}"
            )
        if self.merge_input_count is not None and self.merge_input_count < 1:
            raise ValueError(
                f"Stage {self.id}: merge_input_count must be >= 1, "
                f"got {self.merge_input_count}"
            )
        if self.exit_channels and self.logic_type is not StageLogicType.EXIT:
            raise ValueError(
                f"Stage {self.id}: exit_channels are only valid on exit stages"
            )

    @property
    def is_exit(self) -> bool:
        return self.logic_type is StageLogicType.EXIT

    def accepts(self, category: MaterialCategory) -> bool:
        """True if material of ``category`` may enter this stage."""
        if self.allowed_material_categories is None:
            return True
        return category in self.allowed_material_categories


@dataclass(frozen=True)
class WorkflowBlueprint:
    """A named production pipeline.

    Contract: frozen; ``stages`` keep their declared order.
    Guarantees: stage ids are unique.
    Non-goals: does not enforce a linear path -- any stage may be the
    target of a transition.
    """
    id: str
    name: str
    stages: tuple[WorkflowStage, ...]
    product_type: str = ""
    description: str = ""
    ready_stage_id: str | None = None
    _index: dict[str, WorkflowStage] = field(
        init=False, repr=False, compare=False, hash=False,
    )

    def __post_init__(self) -> None:
        index: dict[str, WorkflowStage] = {}
        for stage in self.stages:
            if stage.id in index:
                raise ValueError(
                    f"Blueprint {self.id}: duplicate stage id {stage.id!r}"
                )
            index[stage.id] = stage
        if self.ready_stage_id is not None and self.ready_stage_id not in index:
            raise ValueError(
                f"Blueprint {self.id}: ready_stage_id {self.ready_stage_id!r} "
                "is not a stage of this blueprint"
            )
        object.__setattr__(self, "_index", index)

    def has_stage(self, stage_id: str) -> bool:
        return stage_id in self._index

    def find_stage(self, stage_id: str) -> WorkflowStage | None:
        return self._index.get(stage_id)

    def stage(self, stage_id: str) -> WorkflowStage:
        """Resolve a stage by id or raise ``StageNotFoundError``."""
        stage = self._index.get(stage_id)
        if stage is None:
            raise StageNotFoundError(stage_id, self.id)
        return stage

    @property
    def stage_ids(self) -> frozenset[str]:
        return frozenset(self._index)

    def ordered_stages(self) -> tuple[WorkflowStage, ...]:
        return tuple(sorted(self.stages, key=lambda s: s.order))

    def exit_stage(self) -> WorkflowStage | None:
        for stage in self.ordered_stages():
            if stage.is_exit:
                return stage
        return None

    def ready_stage(self) -> WorkflowStage | None:
        """The pre-exit stage holding finished stock ready for sale.

        An explicit ``ready_stage_id`` wins; otherwise the first passthrough
        stage whose name mentions packing.
        """
        if self.ready_stage_id is not None:
            return self._index[self.ready_stage_id]
        for stage in self.ordered_stages():
            if (
                stage.logic_type is StageLogicType.PASSTHROUGH
                and "pack" in stage.name.lower()
            ):
                return stage
        return None
