"""
WorkflowContext -- explicit configuration handed to every transition.

The active blueprint and the master data catalog travel together as one
frozen value supplied by the caller, so the engine never consults shared
state.  ``linked_blueprints`` lists the other pipelines items may be sent
to.
"""

from __future__ import annotations

from dataclasses import dataclass

from mes_kernel.domain.blueprint import WorkflowBlueprint, WorkflowStage
from mes_kernel.domain.master_data import MasterDataCatalog
from mes_kernel.exceptions import StageNotFoundError


@dataclass(frozen=True)
class WorkflowContext:
    blueprint: WorkflowBlueprint
    catalog: MasterDataCatalog
    linked_blueprints: tuple[WorkflowBlueprint, ...] = ()

    @property
    def workflow_id(self) -> str:
        return self.blueprint.id

    def stage(self, stage_id: str) -> WorkflowStage:
        """Resolve a stage of the active blueprint."""
        return self.blueprint.stage(stage_id)

    def any_stage(self, stage_id: str) -> WorkflowStage:
        """Resolve a stage in the active or any linked blueprint."""
        for blueprint in (self.blueprint, *self.linked_blueprints):
            stage = blueprint.find_stage(stage_id)
            if stage is not None:
                return stage
        raise StageNotFoundError(stage_id)

    def stage_name(self, stage_id: str) -> str | None:
        """Display name of a stage anywhere in the context, or None."""
        for blueprint in (self.blueprint, *self.linked_blueprints):
            stage = blueprint.find_stage(stage_id)
            if stage is not None:
                return stage.name
        return None

    def all_stages(self) -> tuple[WorkflowStage, ...]:
        return tuple(
            stage
            for blueprint in (self.blueprint, *self.linked_blueprints)
            for stage in blueprint.ordered_stages()
        )
