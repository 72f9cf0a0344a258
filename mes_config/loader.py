"""
YAML loader for workflow configuration sets.

Responsibility:
    Read the YAML fragments of one set directory into ``ConfigDocuments``
    and, once validated, build the kernel's frozen domain objects from
    them.  This is the only module that touches the filesystem on the
    configuration path.

Fragment structure::

    sets/gentanala/
    +-- root.yaml          # set_id, version, default_blueprint, fragments
    +-- blueprints.yaml    # pipelines and their stages
    +-- catalog.yaml       # materials, collections, products with BOMs
    +-- demo_items.yaml    # opening board (optional)

Failure modes:
    - FileNotFoundError if the set directory or ``root.yaml`` is missing.
    - yaml.YAMLError on malformed YAML.
    - KeyError / ValueError from ``build_config_set`` only when called on
      documents that did not pass ``validate_documents``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from mes_config.schema import ConfigDocuments, WorkflowConfigSet
from mes_kernel.domain.blueprint import WorkflowBlueprint, WorkflowStage
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.master_data import (
    BOMComponent,
    MasterCollection,
    MasterDataCatalog,
    MasterMaterial,
    MasterProduct,
)
from mes_kernel.domain.values import MaterialCategory, SalesChannel, StageLogicType

ROOT_FILE = "root.yaml"
DEFAULT_FRAGMENTS = ("blueprints.yaml", "catalog.yaml", "demo_items.yaml")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_documents(set_dir: Path) -> ConfigDocuments:
    """Read every fragment listed by ``root.yaml`` without interpreting it."""
    root_path = set_dir / ROOT_FILE
    if not root_path.exists():
        raise FileNotFoundError(f"{ROOT_FILE} not found in {set_dir}")
    root = load_yaml_file(root_path)

    merged: dict[str, list[dict[str, Any]]] = {
        "blueprints": [], "materials": [], "products": [],
        "collections": [], "items": [],
    }
    for fragment in root.get("fragments", DEFAULT_FRAGMENTS):
        path = set_dir / fragment
        if not path.exists():
            continue
        data = load_yaml_file(path)
        for key in merged:
            merged[key].extend(data.get(key) or [])

    return ConfigDocuments(
        set_name=set_dir.name,
        root=root,
        blueprints=merged["blueprints"],
        materials=merged["materials"],
        products=merged["products"],
        collections=merged["collections"],
        items=merged["items"],
    )


def parse_categories(value: Any) -> frozenset[MaterialCategory] | None:
    if value is None:
        return None
    return frozenset(MaterialCategory(c) for c in value)


def parse_stage(data: dict[str, Any]) -> WorkflowStage:
    return WorkflowStage(
        id=data["id"],
        name=data["name"],
        order=int(data["order"]),
        logic_type=StageLogicType(data["logic_type"]),
        allowed_material_categories=parse_categories(data.get("allowed_material_categories")),
        default_yield=data.get("default_yield"),
        merge_input_count=data.get("merge_input_count"),
        exit_channels=tuple(SalesChannel(c) for c in data.get("exit_channels") or ()),
        emoji=data.get("emoji"),
    )


def parse_blueprint(data: dict[str, Any]) -> WorkflowBlueprint:
    return WorkflowBlueprint(
        id=data["id"],
        name=data["name"],
        stages=tuple(parse_stage(s) for s in data.get("stages") or ()),
        product_type=data.get("product_type", ""),
        description=data.get("description", ""),
        ready_stage_id=data.get("ready_stage_id"),
    )


def parse_material(data: dict[str, Any]) -> MasterMaterial:
    return MasterMaterial(
        sku=data["sku"],
        name=data["name"],
        category=MaterialCategory(data["category"]),
        unit=data.get("unit", "pcs"),
        description=data.get("description", ""),
        transform_yields=tuple(data.get("transform_yields") or ()),
    )


def parse_product(data: dict[str, Any]) -> MasterProduct:
    return MasterProduct(
        sku=data["sku"],
        name=data["name"],
        collection=data.get("collection"),
        bom=tuple(
            BOMComponent(
                material_sku=line["material_sku"],
                material_name=line.get("material_name", line["material_sku"]),
                qty=int(line.get("qty", 1)),
            )
            for line in data.get("bom") or ()
        ),
        description=data.get("description", ""),
    )


def parse_collection(data: dict[str, Any]) -> MasterCollection:
    return MasterCollection(id=data["id"], name=data["name"], color=data.get("color"))


def parse_item(data: dict[str, Any]) -> KanbanItem:
    """Opening-board item; always active, never a container."""
    return KanbanItem(
        id=data["id"],
        name=data["name"],
        sku=data.get("sku"),
        stage_id=data["stage_id"],
        quantity=int(data["quantity"]),
        collection=data.get("collection"),
        emoji=data.get("emoji"),
        price=Decimal(str(data.get("price", "0"))),
    )


def build_config_set(documents: ConfigDocuments) -> WorkflowConfigSet:
    """Turn validated documents into frozen domain objects."""
    blueprints = tuple(parse_blueprint(b) for b in documents.blueprints)
    catalog = MasterDataCatalog(
        materials=tuple(parse_material(m) for m in documents.materials),
        products=tuple(parse_product(p) for p in documents.products),
        collections=tuple(parse_collection(c) for c in documents.collections),
    )
    root = documents.root
    default_id = root.get("default_blueprint") or blueprints[0].id
    return WorkflowConfigSet(
        set_id=root.get("set_id", documents.set_name),
        version=int(root.get("version", 1)),
        checksum=compute_checksum(documents.as_canonical()),
        blueprints=blueprints,
        catalog=catalog,
        default_blueprint_id=default_id,
        demo_items=tuple(parse_item(i) for i in documents.items),
        description=root.get("description", ""),
    )
