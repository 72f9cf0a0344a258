"""
Configuration Validator (``mes_config.validator``).

Responsibility
--------------
Validates the raw documents of a configuration set before any domain
object is built, so that every problem in a set is reported at once
rather than the first ``ValueError`` a frozen dataclass happens to raise.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``mes_config.get_workflow_context`` after ``load_documents`` and before
``build_config_set``.  Depends only on kernel value enums.

Invariants enforced
-------------------
* Stage ids are unique across every blueprint of the set.
* Stage logic types, material categories and sales channels are known.
* Exit channels appear only on exit stages.
* A configured ``ready_stage_id`` names a passthrough stage of its blueprint.
* SKUs are unique across materials and products; collection ids are unique.
* BOM lines reference catalogued materials with a positive quantity.
* Opening-board items sit on a known, non-exit stage with a positive quantity.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``) -> the set MUST NOT be used.
* Warnings (``ConfigValidationResult.warnings``) -> the set loads but
  should be reviewed (split stage without a default yield, no exit
  stage, BOM-less product, unknown transform yield, ...).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mes_config.schema import ConfigDocuments
from mes_kernel.domain.blueprint import WorkflowBlueprint
from mes_kernel.domain.values import MaterialCategory, SalesChannel, StageLogicType

_STAGE_REQUIRED = ("id", "name", "order", "logic_type")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block loading but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _is_member(enum_type: type[Enum], value: Any) -> bool:
    try:
        enum_type(value)
    except ValueError:
        return False
    return True


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1


def _duplicates(values: Iterable[Any]) -> list[Any]:
    seen: set[Any] = set()
    dupes: list[Any] = []
    for value in values:
        if value in seen and value not in dupes:
            dupes.append(value)
        seen.add(value)
    return dupes


def validate_documents(documents: ConfigDocuments) -> ConfigValidationResult:
    """
    Validate the raw documents of a configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult``; never raises on bad data.
        - When ``is_valid`` is True, ``build_config_set`` succeeds.
    """
    result = ConfigValidationResult()

    stage_ids = _validate_blueprints(documents.blueprints, result)
    skus = _validate_catalog(documents, result)
    _validate_default_blueprint(documents, result)
    _validate_items(documents.items, stage_ids, skus, result)

    return result


def _validate_blueprints(
    blueprints: list[dict[str, Any]], result: ConfigValidationResult,
) -> dict[str, dict[str, Any]]:
    """Check every pipeline; returns all stage documents by id."""
    if not blueprints:
        result.add_error("Configuration set declares no blueprints")

    for dupe in _duplicates(b.get("id") for b in blueprints):
        result.add_error(f"Duplicate blueprint id: {dupe}")

    all_stages: dict[str, dict[str, Any]] = {}
    for bp in blueprints:
        bp_id = bp.get("id") or "<unnamed>"
        if not bp.get("id") or not bp.get("name"):
            result.add_error(f"Blueprint {bp_id}: id and name are required")
        stages = bp.get("stages") or []
        if not stages:
            result.add_error(f"Blueprint {bp_id}: has no stages")

        local_ids: list[str] = []
        for stage in stages:
            _validate_stage(bp_id, stage, result)
            sid = stage.get("id")
            if not sid:
                continue
            if sid in all_stages:
                result.add_error(f"Duplicate stage id across blueprints: {sid}")
            all_stages[sid] = stage
            local_ids.append(sid)

        logic_types = [s.get("logic_type") for s in stages]
        if StageLogicType.EXIT.value not in logic_types:
            result.add_warning(f"Blueprint {bp_id}: has no exit stage; nothing can be sold")

        ready_id = bp.get("ready_stage_id")
        if ready_id is not None:
            ready = next((s for s in stages if s.get("id") == ready_id), None)
            if ready is None:
                result.add_error(f"Blueprint {bp_id}: ready_stage_id {ready_id} is not one of its stages")
            elif ready.get("logic_type") != StageLogicType.PASSTHROUGH.value:
                result.add_error(f"Blueprint {bp_id}: ready stage {ready_id} must be a passthrough stage")
        elif not any(
            s.get("logic_type") == StageLogicType.PASSTHROUGH.value
            and "pack" in str(s.get("name", "")).lower()
            for s in stages
        ):
            result.add_warning(f"Blueprint {bp_id}: no ready stage; ready stock will read zero")

    return all_stages


def _validate_stage(bp_id: str, stage: dict[str, Any], result: ConfigValidationResult) -> None:
    sid = stage.get("id") or "<unnamed>"
    where = f"Blueprint {bp_id}, stage {sid}"

    missing = [k for k in _STAGE_REQUIRED if stage.get(k) in (None, "")]
    if missing:
        result.add_error(f"{where}: missing {', '.join(missing)}")
    if "order" in stage and not isinstance(stage["order"], int):
        result.add_error(f"{where}: order must be an integer")

    logic = stage.get("logic_type")
    if logic is not None and not _is_member(StageLogicType, logic):
        result.add_error(f"{where}: unknown logic_type {logic!r}")

    for category in stage.get("allowed_material_categories") or ():
        if not _is_member(MaterialCategory, category):
            result.add_error(f"{where}: unknown material category {category!r}")

    for key in ("default_yield", "merge_input_count"):
        if stage.get(key) is not None and not _is_positive_int(stage[key]):
            result.add_error(f"{where}: {key} must be a positive integer")

    channels = stage.get("exit_channels") or ()
    for channel in channels:
        if not _is_member(SalesChannel, channel):
            result.add_error(f"{where}: unknown sales channel {channel!r}")
    if channels and logic != StageLogicType.EXIT.value:
        result.add_error(f"{where}: exit_channels are only valid on exit stages")

    if logic == StageLogicType.SPLIT.value and stage.get("default_yield") is None:
        result.add_warning(f"{where}: split stage has no default_yield; operators start from 1")


def _validate_catalog(documents: ConfigDocuments, result: ConfigValidationResult) -> set[str]:
    """Check master data; returns every catalogued SKU."""
    material_skus = [m.get("sku") for m in documents.materials]
    product_skus = [p.get("sku") for p in documents.products]

    for dupe in _duplicates(material_skus):
        result.add_error(f"Duplicate material SKU: {dupe}")
    for dupe in _duplicates(product_skus):
        result.add_error(f"Duplicate product SKU: {dupe}")
    for sku in sorted(set(material_skus) & set(product_skus) - {None}):
        result.add_error(f"SKU {sku} is both a material and a product")
    for dupe in _duplicates(c.get("id") for c in documents.collections):
        result.add_error(f"Duplicate collection id: {dupe}")

    for material in documents.materials:
        sku = material.get("sku") or "<unnamed>"
        if not material.get("sku") or not material.get("name"):
            result.add_error(f"Material {sku}: sku and name are required")
        if not _is_member(MaterialCategory, material.get("category")):
            result.add_error(f"Material {sku}: unknown category {material.get('category')!r}")
        elif material["category"] == MaterialCategory.FINISHED.value:
            result.add_warning(f"Material {sku}: finished goods belong in products")

    known_materials = set(material_skus) - {None}
    all_skus = known_materials | (set(product_skus) - {None})
    for material in documents.materials:
        for target in material.get("transform_yields") or ():
            if target not in all_skus:
                result.add_warning(
                    f"Material {material.get('sku')}: transform yield {target} is not catalogued"
                )

    collection_names = {c.get("name") for c in documents.collections}
    for product in documents.products:
        sku = product.get("sku") or "<unnamed>"
        if not product.get("sku") or not product.get("name"):
            result.add_error(f"Product {sku}: sku and name are required")
        collection = product.get("collection")
        if collection and collection not in collection_names:
            result.add_warning(f"Product {sku}: collection {collection!r} is not declared")
        bom = product.get("bom") or []
        if not bom:
            result.add_warning(f"Product {sku}: empty bill of materials; it can never be assembled")
        for dupe in _duplicates(line.get("material_sku") for line in bom):
            result.add_error(f"Product {sku}: material {dupe} listed twice in BOM")
        for line in bom:
            material_sku = line.get("material_sku")
            if material_sku not in known_materials:
                result.add_error(f"Product {sku}: BOM references unknown material {material_sku}")
            if not _is_positive_int(line.get("qty", 1)):
                result.add_error(f"Product {sku}: BOM qty for {material_sku} must be a positive integer")

    return all_skus


def _validate_default_blueprint(documents: ConfigDocuments, result: ConfigValidationResult) -> None:
    default_id = documents.root.get("default_blueprint")
    if default_id is not None and default_id not in {b.get("id") for b in documents.blueprints}:
        result.add_error(f"default_blueprint {default_id} is not declared")


def _validate_items(
    items: list[dict[str, Any]],
    stages: dict[str, dict[str, Any]],
    skus: set[str],
    result: ConfigValidationResult,
) -> None:
    for dupe in _duplicates(i.get("id") for i in items):
        result.add_error(f"Duplicate demo item id: {dupe}")
    for item in items:
        iid = item.get("id") or "<unnamed>"
        if not item.get("id") or not item.get("name"):
            result.add_error(f"Item {iid}: id and name are required")
        stage = stages.get(item.get("stage_id"))
        if stage is None:
            result.add_error(f"Item {iid}: unknown stage {item.get('stage_id')}")
        elif stage.get("logic_type") == StageLogicType.EXIT.value:
            result.add_error(f"Item {iid}: cannot start on exit stage {stage.get('id')}")
        if not _is_positive_int(item.get("quantity")):
            result.add_error(f"Item {iid}: quantity must be a positive integer")
        sku = item.get("sku")
        if sku and sku not in skus:
            result.add_warning(f"Item {iid}: SKU {sku} is not catalogued")


def validate_stage_id_stability(
    old: Iterable[WorkflowBlueprint], new: Iterable[WorkflowBlueprint],
) -> ConfigValidationResult:
    """
    Compare two revisions of a set's pipelines.

    Items reference stages by id, so removing a stage id orphans whatever
    sits there (error).  Renaming and reordering are free; changing a
    stage's logic type changes what a drop onto it does (warning).
    """
    result = ConfigValidationResult()
    before = {s.id: s for bp in old for s in bp.stages}
    after = {s.id: s for bp in new for s in bp.stages}

    for sid in sorted(before.keys() - after.keys()):
        result.add_error(f"Stage {sid} was removed; items on it would be orphaned")
    for sid in sorted(before.keys() & after.keys()):
        if before[sid].logic_type is not after[sid].logic_type:
            result.add_warning(
                f"Stage {sid} changed logic type "
                f"{before[sid].logic_type.value} -> {after[sid].logic_type.value}"
            )
    return result
