"""
Module: mes_engines.assembly
Responsibility:
    Bill-of-materials arithmetic for incremental assembly: how many finished
    units the parts allocated to a container can produce, and what is left
    over once those units are built.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Used by
    ``TransitionEngine.allocate_to_assembly``; contains no item handling.

Invariants enforced:
    - completions == min over BOM lines of floor(allocated / line.qty).
    - allocated == consumed + leftover for every component SKU, so leftover
      parts can always be returned to the board.

Failure modes:
    - A product with an empty BOM never completes (completions == 0).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from mes_kernel.domain.master_data import MasterProduct


@dataclass(frozen=True)
class CompletionPlan:
    """What a completion check decided.

    ``consumed`` and ``leftover`` are keyed by component SKU; ``leftover``
    holds only positive amounts, in BOM order.
    """
    product_sku: str
    completions: int
    consumed: dict[str, int] = field(default_factory=dict)
    leftover: dict[str, int] = field(default_factory=dict)

    @property
    def completes(self) -> bool:
        return self.completions > 0

    @property
    def consumed_units(self) -> int:
        return sum(self.consumed.values())


def possible_completions(product: MasterProduct, progress: Mapping[str, int]) -> int:
    """Finished units the allocated parts can build right now."""
    if not product.bom:
        return 0
    return min(progress.get(line.material_sku, 0) // line.qty for line in product.bom)


def plan_completion(product: MasterProduct, progress: Mapping[str, int]) -> CompletionPlan:
    """Split allocated parts into consumed-by-completion and leftover.

    With no completion, nothing is consumed and nothing is left over: the
    parts stay on the container.
    """
    completions = possible_completions(product, progress)
    if completions == 0:
        return CompletionPlan(product.sku, 0)

    consumed: dict[str, int] = {}
    leftover: dict[str, int] = {}
    for line in product.bom:
        used = line.qty * completions
        consumed[line.material_sku] = used
        rest = progress.get(line.material_sku, 0) - used
        if rest > 0:
            leftover[line.material_sku] = rest
    # Parts allocated under a SKU the BOM no longer lists are returned whole
    for sku, qty in progress.items():
        if sku not in consumed and qty > 0:
            leftover[sku] = qty
    return CompletionPlan(product.sku, completions, consumed, leftover)


def missing_parts(product: MasterProduct, progress: Mapping[str, int]) -> dict[str, int]:
    """Units still needed per component to finish one more unit."""
    target = possible_completions(product, progress) + 1
    needed: dict[str, int] = {}
    for line in product.bom:
        short = line.qty * target - progress.get(line.material_sku, 0)
        if short > 0:
            needed[line.material_sku] = short
    return needed
