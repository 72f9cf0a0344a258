"""
Module: mes_engines.categories
Responsibility:
    Resolve the material category of a kanban item and enforce a stage's
    material-category allow-list.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Resolution order is fixed: catalog lookup by SKU, then the ``FG-``
      naming convention (finished), then lineage or the ``WIP-`` naming
      convention (wip), then ``UNCATALOGUED_DEFAULT``.
    - A rejected gate check raises before any item is built.

Failure modes:
    - CategoryNotAllowedError when the stage's allow-list excludes the
      resolved category.

Audit relevance:
    ``resolve_category`` reports *how* the category was decided, and the
    rejection log line carries it, so a surprising gate decision can be
    traced to a missing catalog entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from mes_kernel.domain.blueprint import WorkflowStage
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.master_data import MasterDataCatalog
from mes_kernel.domain.values import MaterialCategory
from mes_kernel.exceptions import CategoryNotAllowedError
from mes_kernel.logging_config import get_logger

logger = get_logger("engines.categories")

FINISHED_SKU_PREFIX = "FG-"
WIP_SKU_PREFIX = "WIP-"

# Category assumed for a SKU that is neither catalogued nor recognisable by
# naming convention or lineage.
UNCATALOGUED_DEFAULT = MaterialCategory.RAW


class CategorySource(str, Enum):
    CATALOG = "catalog"
    SKU_PREFIX = "sku_prefix"
    LINEAGE = "lineage"
    DEFAULT = "default"


@dataclass(frozen=True)
class CategoryResolution:
    category: MaterialCategory
    source: CategorySource


def resolve_category(item: KanbanItem, catalog: MasterDataCatalog) -> CategoryResolution:
    """Decide the material category of ``item``."""
    catalogued = catalog.category_of(item.sku)
    if catalogued is not None:
        return CategoryResolution(catalogued, CategorySource.CATALOG)

    sku = item.sku or ""
    if sku.startswith(FINISHED_SKU_PREFIX):
        return CategoryResolution(MaterialCategory.FINISHED, CategorySource.SKU_PREFIX)
    if item.parent_id is not None or item.merged_from:
        return CategoryResolution(MaterialCategory.WIP, CategorySource.LINEAGE)
    if sku.startswith(WIP_SKU_PREFIX):
        return CategoryResolution(MaterialCategory.WIP, CategorySource.SKU_PREFIX)
    return CategoryResolution(UNCATALOGUED_DEFAULT, CategorySource.DEFAULT)


def infer_category(item: KanbanItem, catalog: MasterDataCatalog) -> MaterialCategory:
    return resolve_category(item, catalog).category


def check_category_gate(
    item: KanbanItem,
    stage: WorkflowStage,
    catalog: MasterDataCatalog,
) -> MaterialCategory:
    """Raise ``CategoryNotAllowedError`` unless ``stage`` accepts ``item``.

    Returns the resolved category.
    """
    resolution = resolve_category(item, catalog)
    if stage.accepts(resolution.category):
        return resolution.category

    allowed = tuple(sorted(c.value for c in stage.allowed_material_categories or ()))
    logger.warning(
        "category_gate_rejected",
        extra={
            "item_id": item.id,
            "sku": item.sku,
            "stage_id": stage.id,
            "category": resolution.category.value,
            "category_source": resolution.source.value,
            "allowed": allowed,
        },
    )
    raise CategoryNotAllowedError(
        stage_id=stage.id,
        stage_name=stage.name,
        category=resolution.category.value,
        allowed=allowed,
    )
