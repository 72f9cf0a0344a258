"""
Pytest fixtures for the production workflow test suite.

Provides:
- Structured logging configured once per session, LogContext cleared per test
- Deterministic clock and sequential id generator
- The demo ``gentanala`` configuration set and its watch-line context
- An in-memory SQLite session with the schema and immutability listeners
- ``make_item`` / ``make_context`` builders for hand-made boards
"""

import json
import logging
from datetime import UTC, datetime
from io import StringIO

import pytest

from mes_config import load_config_set
from mes_engines.transitions import TransitionEngine
from mes_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from mes_kernel.db.immutability import unregister_immutability_listeners
from mes_kernel.domain.blueprint import WorkflowBlueprint, WorkflowStage
from mes_kernel.domain.clock import DeterministicClock
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.domain.ids import SequentialIdGenerator
from mes_kernel.domain.kanban import KanbanItem
from mes_kernel.domain.master_data import (
    BOMComponent,
    MasterDataCatalog,
    MasterMaterial,
    MasterProduct,
)
from mes_kernel.domain.values import MaterialCategory, StageLogicType
from mes_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TEST_ACTOR = "tester"
TEST_START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture mes logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.move(...)
            logs = captured_logs()
            assert any(r["message"] == "move_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("mes")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Time, identity, engine
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(TEST_START)


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


@pytest.fixture
def engine(id_generator, deterministic_clock):
    return TransitionEngine(ids=id_generator, clock=deterministic_clock)


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture(scope="session")
def config_set():
    return load_config_set("gentanala")


@pytest.fixture
def context(config_set) -> WorkflowContext:
    """Watch-line context with the service line linked."""
    return config_set.context("bp-watch-001")


@pytest.fixture
def demo_items(config_set) -> tuple[KanbanItem, ...]:
    return config_set.demo_items


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_item():
    """Build a plain active item with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make(sku="RAW-JATI-001", stage_id="stg-raw", quantity=5, **fields) -> KanbanItem:
        fields.setdefault("id", f"t-{next(counter):03d}")
        fields.setdefault("name", sku or "Loose item")
        return KanbanItem(sku=sku, stage_id=stage_id, quantity=quantity, **fields)

    return _make


@pytest.fixture
def make_context():
    """Build a five-stage context around caller-supplied master data.

    Stages: ``s-in`` (passthrough), ``s-split`` (split), ``s-merge``
    (merge), ``s-pack`` (passthrough, the ready stage) and ``s-out`` (exit).
    """

    def _make(
        products=(),
        materials=(),
        allowed_merge=None,
        exit_channels=(),
    ) -> WorkflowContext:
        blueprint = WorkflowBlueprint(
            id="bp-test",
            name="Test line",
            stages=(
                WorkflowStage("s-in", "Intake", 1, StageLogicType.PASSTHROUGH),
                WorkflowStage("s-split", "Cutting", 2, StageLogicType.SPLIT, default_yield=2),
                WorkflowStage(
                    "s-merge", "Assembly", 3, StageLogicType.MERGE,
                    allowed_material_categories=allowed_merge,
                ),
                WorkflowStage("s-pack", "Packing", 4, StageLogicType.PASSTHROUGH),
                WorkflowStage(
                    "s-out", "Sold", 5, StageLogicType.EXIT,
                    exit_channels=tuple(exit_channels),
                ),
            ),
        )
        catalog = MasterDataCatalog(materials=tuple(materials), products=tuple(products))
        return WorkflowContext(blueprint=blueprint, catalog=catalog)

    return _make


@pytest.fixture
def two_part_product():
    """A product needing one case and one movement."""
    return MasterProduct(
        sku="FG-TEST",
        name="Test Watch",
        collection=None,
        bom=(
            BOMComponent("WIP-CASE-HT", "Casing Hutan Tropis", 1),
            BOMComponent("RAW-MIYOTA-001", "Mesin Miyota 2035", 1),
        ),
    )


@pytest.fixture
def test_materials():
    return (
        MasterMaterial("WIP-CASE-HT", "Casing Hutan Tropis", MaterialCategory.WIP),
        MasterMaterial("RAW-MIYOTA-001", "Mesin Miyota 2035", MaterialCategory.RAW),
        MasterMaterial("RAW-JATI-001", "Balok Kayu Jati", MaterialCategory.RAW,
                       transform_yields=("WIP-CASE-HT",)),
    )


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def session():
    """Fresh in-memory SQLite schema per test."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()
        unregister_immutability_listeners()
        drop_tables()
        reset_engine()
