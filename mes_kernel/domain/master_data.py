"""
Master data catalog (``mes_kernel.domain.master_data``).

Responsibility
--------------
Reference data the transition engine consults: materials (raw and WIP,
with the SKUs they may be split into), finished products with their bill
of materials, and collections.  Also the autocomplete search helpers used
by callers that build add/split dialogs.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The catalog is
loaded by ``mes_config`` and passed to the engine inside a
``WorkflowContext``.

Invariants enforced
-------------------
* SKUs are unique across materials and products.
* BOM component quantities are positive.
* Catalog "mutations" return a new catalog; the original is untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal

from mes_kernel.domain.values import MaterialCategory


@dataclass(frozen=True)
class MasterMaterial:
    """A raw or intermediate material."""
    sku: str
    name: str
    category: MaterialCategory
    unit: str = "pcs"
    description: str = ""
    transform_yields: tuple[str, ...] = ()


@dataclass(frozen=True)
class BOMComponent:
    """One line of a bill of materials: ``qty`` units of ``material_sku`` per finished unit."""
    material_sku: str
    material_name: str
    qty: int = 1

    def __post_init__(self) -> None:
        if self.qty < 1:
            raise ValueError(
                f"BOM line {self.material_sku}: qty must be >= 1, got {self.qty}"
            )


@dataclass(frozen=True)
class MasterProduct:
    """A finished good and the components needed to assemble one unit."""
    sku: str
    name: str
    collection: str | None
    bom: tuple[BOMComponent, ...]
    description: str = ""

    def bom_line(self, sku: str | None) -> BOMComponent | None:
        for line in self.bom:
            if line.material_sku == sku:
                return line
        return None

    def requires(self, sku: str | None) -> bool:
        return self.bom_line(sku) is not None

    def component_name(self, sku: str) -> str:
        line = self.bom_line(sku)
        return line.material_name if line is not None else sku


@dataclass(frozen=True)
class MasterCollection:
    id: str
    name: str
    color: str | None = None


@dataclass(frozen=True)
class SearchHit:
    """Autocomplete result row spanning materials and products."""
    kind: Literal["material", "product"]
    name: str
    sku: str
    collection: str | None = None
    category: MaterialCategory | None = None


def _matches(query: str, *fields: str | None) -> bool:
    return any(query in f.lower() for f in fields if f)


@dataclass(frozen=True)
class MasterDataCatalog:
    """Immutable catalog of materials, products and collections.

    Contract: frozen; lookups by SKU are O(1).
    Guarantees: no SKU names both a material and a product.
    Non-goals: does not track stock levels -- the inventory ledger does.
    """
    materials: tuple[MasterMaterial, ...] = ()
    products: tuple[MasterProduct, ...] = ()
    collections: tuple[MasterCollection, ...] = ()
    _materials_by_sku: dict[str, MasterMaterial] = field(
        init=False, repr=False, compare=False, hash=False,
    )
    _products_by_sku: dict[str, MasterProduct] = field(
        init=False, repr=False, compare=False, hash=False,
    )

    def __post_init__(self) -> None:
        materials: dict[str, MasterMaterial] = {}
        for m in self.materials:
            if m.sku in materials:
                raise ValueError(f"Duplicate material SKU: {m.sku}")
            materials[m.sku] = m
        products: dict[str, MasterProduct] = {}
        for p in self.products:
            if p.sku in products or p.sku in materials:
                raise ValueError(f"Duplicate product SKU: {p.sku}")
            products[p.sku] = p
        collection_ids = [c.id for c in self.collections]
        if len(collection_ids) != len(set(collection_ids)):
            raise ValueError("Duplicate collection id")
        object.__setattr__(self, "_materials_by_sku", materials)
        object.__setattr__(self, "_products_by_sku", products)

    # -- lookups -----------------------------------------------------------

    def material(self, sku: str | None) -> MasterMaterial | None:
        if sku is None:
            return None
        return self._materials_by_sku.get(sku)

    def product(self, sku: str | None) -> MasterProduct | None:
        if sku is None:
            return None
        return self._products_by_sku.get(sku)

    def category_of(self, sku: str | None) -> MaterialCategory | None:
        """Authoritative category for a SKU, or None when it is not catalogued."""
        material = self.material(sku)
        if material is not None:
            return material.category
        if self.product(sku) is not None:
            return MaterialCategory.FINISHED
        return None

    def products_consuming(self, sku: str | None) -> tuple[MasterProduct, ...]:
        """Products whose BOM lists ``sku`` as a component."""
        return tuple(p for p in self.products if p.requires(sku))

    def split_targets(self, sku: str | None) -> tuple[MasterMaterial | str, ...]:
        """What ``sku`` may become through a split.

        Targets missing from the catalog are returned as bare SKU strings.
        """
        material = self.material(sku)
        if material is None:
            return ()
        return tuple(self._materials_by_sku.get(t, t) for t in material.transform_yields)

    # -- search ------------------------------------------------------------

    def search_materials(self, query: str) -> tuple[MasterMaterial, ...]:
        q = query.lower().strip()
        if not q:
            return self.materials[:10]
        hits = [
            m for m in self.materials
            if _matches(q, m.name, m.sku) or q in m.category.value
        ]
        return tuple(hits[:10])

    def search_products(self, query: str) -> tuple[MasterProduct, ...]:
        q = query.lower().strip()
        if not q:
            return self.products[:10]
        hits = [p for p in self.products if _matches(q, p.name, p.sku, p.collection)]
        return tuple(hits[:10])

    def search_collections(self, query: str) -> tuple[MasterCollection, ...]:
        q = query.lower().strip()
        if not q:
            return self.collections
        return tuple(c for c in self.collections if q in c.name.lower())

    def search_all(self, query: str) -> tuple[SearchHit, ...]:
        """Combined autocomplete: up to 6 materials then up to 4 products."""
        q = query.lower().strip()
        materials = [m for m in self.materials if not q or _matches(q, m.name, m.sku)]
        products = [p for p in self.products if not q or _matches(q, p.name, p.sku)]
        hits = [
            SearchHit("material", m.name, m.sku, category=m.category)
            for m in materials[:6]
        ] + [
            SearchHit("product", p.name, p.sku, collection=p.collection)
            for p in products[:4]
        ]
        return tuple(hits[:10])

    def search_by_categories(
        self,
        query: str,
        categories: frozenset[MaterialCategory] | set[MaterialCategory],
    ) -> tuple[SearchHit, ...]:
        """Autocomplete restricted to a stage's allow-list.

        Raw and WIP categories draw from materials (up to 8); ``finished``
        draws from products (up to 6).
        """
        q = query.lower().strip()
        hits: list[SearchHit] = []
        material_categories = categories - {MaterialCategory.FINISHED}
        if material_categories:
            materials = [
                m for m in self.materials
                if m.category in material_categories
                and (not q or _matches(q, m.name, m.sku))
            ]
            hits.extend(
                SearchHit("material", m.name, m.sku, category=m.category)
                for m in materials[:8]
            )
        if MaterialCategory.FINISHED in categories:
            products = [p for p in self.products if not q or _matches(q, p.name, p.sku)]
            hits.extend(
                SearchHit(
                    "product", p.name, p.sku,
                    collection=p.collection, category=MaterialCategory.FINISHED,
                )
                for p in products[:6]
            )
        return tuple(hits[:10])

    # -- copy-on-write edits -----------------------------------------------

    def with_material(self, material: MasterMaterial) -> MasterDataCatalog:
        """Add or replace (by SKU) a material."""
        kept = tuple(m for m in self.materials if m.sku != material.sku)
        return replace(self, materials=kept + (material,))

    def without_material(self, sku: str) -> MasterDataCatalog:
        return replace(self, materials=tuple(m for m in self.materials if m.sku != sku))

    def with_product(self, product: MasterProduct) -> MasterDataCatalog:
        """Add or replace (by SKU) a product."""
        kept = tuple(p for p in self.products if p.sku != product.sku)
        return replace(self, products=kept + (product,))

    def without_product(self, sku: str) -> MasterDataCatalog:
        return replace(self, products=tuple(p for p in self.products if p.sku != sku))

    def with_collection(self, collection: MasterCollection) -> MasterDataCatalog:
        kept = tuple(c for c in self.collections if c.id != collection.id)
        return replace(self, collections=kept + (collection,))

    def without_collection(self, collection_id: str) -> MasterDataCatalog:
        return replace(
            self,
            collections=tuple(c for c in self.collections if c.id != collection_id),
        )
