"""
mes_config.schema -- the assembled configuration set.

A configuration set is a directory of YAML fragments describing one
workshop: its production pipelines, its master data and, optionally, an
opening board.  ``WorkflowConfigSet`` is the frozen, validated result of
loading such a directory; ``WorkflowContext`` values handed to the engines
are cut from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mes_kernel.domain.blueprint import WorkflowBlueprint
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.master_data import MasterDataCatalog
from mes_kernel.exceptions import NotFoundError


@dataclass(frozen=True)
class ConfigDocuments:
    """Raw YAML documents of one set, keyed by fragment."""

    set_name: str
    root: dict[str, Any]
    blueprints: list[dict[str, Any]]
    materials: list[dict[str, Any]]
    products: list[dict[str, Any]]
    collections: list[dict[str, Any]]
    items: list[dict[str, Any]]

    def as_canonical(self) -> dict[str, Any]:
        return {
            "root": self.root,
            "blueprints": self.blueprints,
            "materials": self.materials,
            "products": self.products,
            "collections": self.collections,
            "items": self.items,
        }


@dataclass(frozen=True)
class WorkflowConfigSet:
    """
    A loaded, validated configuration set.

    Contract:
        ``blueprints`` have globally unique stage ids, so any stage id
        resolves to exactly one pipeline.  ``checksum`` is the SHA-256 of
        the canonical JSON of the source documents.
    """

    set_id: str
    version: int
    checksum: str
    blueprints: tuple[WorkflowBlueprint, ...]
    catalog: MasterDataCatalog
    default_blueprint_id: str
    demo_items: tuple[KanbanItem, ...] = ()
    description: str = ""

    def blueprint(self, blueprint_id: str | None = None) -> WorkflowBlueprint:
        wanted = blueprint_id or self.default_blueprint_id
        for blueprint in self.blueprints:
            if blueprint.id == wanted:
                return blueprint
        raise NotFoundError(f"Blueprint {wanted!r} not found in set {self.set_id!r}")

    def context(self, blueprint_id: str | None = None) -> WorkflowContext:
        """Context for one pipeline; every other pipeline in the set is linked."""
        active = self.blueprint(blueprint_id)
        return WorkflowContext(
            blueprint=active,
            catalog=self.catalog,
            linked_blueprints=tuple(b for b in self.blueprints if b.id != active.id),
        )
