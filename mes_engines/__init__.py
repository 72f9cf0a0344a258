"""
Module: mes_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    transition, routing, conservation and stats engines.  This is the
    canonical import surface for ``mes_services``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import mes_kernel (domain, exceptions, logging).
    MUST NOT import mes_services or mes_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Time comes from an
      injected Clock (transitions) or an explicit ``as_of`` (stats).
    - Determinism: identical inputs, ids and clock readings always produce
      identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``mes_engines.tracer``), emitting MES_ENGINE_TRACE log records.
"""

from mes_engines.assembly import CompletionPlan, missing_parts, plan_completion, possible_completions
from mes_engines.categories import (
    UNCATALOGUED_DEFAULT,
    CategoryResolution,
    CategorySource,
    check_category_gate,
    infer_category,
    resolve_category,
)
from mes_engines.conservation import expected_unit_delta, lineage_root, lineage_units, total_units
from mes_engines.routing import DropDecision, DropKind, classify_drop
from mes_engines.stats import StageSummary, WorkflowStats, calc_stats, stage_summaries
from mes_engines.transitions import UNSET, ItemUpdate, TransitionEngine, TransitionResult

__all__ = [
    # Transitions
    "TransitionEngine",
    "TransitionResult",
    "ItemUpdate",
    "UNSET",
    # Assembly
    "CompletionPlan",
    "missing_parts",
    "plan_completion",
    "possible_completions",
    # Categories
    "UNCATALOGUED_DEFAULT",
    "CategoryResolution",
    "CategorySource",
    "check_category_gate",
    "infer_category",
    "resolve_category",
    # Routing
    "DropDecision",
    "DropKind",
    "classify_drop",
    # Conservation
    "expected_unit_delta",
    "lineage_root",
    "lineage_units",
    "total_units",
    # Stats
    "StageSummary",
    "WorkflowStats",
    "calc_stats",
    "stage_summaries",
]
