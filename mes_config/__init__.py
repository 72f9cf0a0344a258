"""
mes_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain pipelines and master data at runtime
    through ``get_workflow_context()`` (one pipeline) and
    ``load_config_set()`` (the whole set).  No other component reads the
    YAML fragments directly.

Architecture position:
    Configuration -- YAML-driven, load-time validated.  Sits above
    ``mes_kernel`` and below ``mes_services``.  The kernel and the engines
    MUST NEVER import from ``mes_config``.

Invariants enforced:
    - Load-time validation: a set must pass ``validate_documents`` before
      any domain object is built from it.
    - Deterministic checksum: the same YAML always yields the same
      ``WorkflowConfigSet.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- set directory or ``root.yaml`` missing.
    - ``ConfigValidationError`` -- the set has validation errors.
    - ``NotFoundError`` -- the requested blueprint is not in the set.

Audit relevance:
    Every successful load emits a ``MES_CONFIG_TRACE`` log record carrying
    the set id, version, checksum and the blueprint and catalog counts, so
    each activity trail can be tied to the configuration that governed it.
"""

from __future__ import annotations

from decimal import InvalidOperation
from pathlib import Path

from mes_config.loader import build_config_set, compute_checksum, load_documents
from mes_config.schema import ConfigDocuments, WorkflowConfigSet
from mes_config.validator import (
    ConfigValidationResult,
    validate_documents,
    validate_stage_id_stability,
)
from mes_kernel.domain.context import WorkflowContext
from mes_kernel.exceptions import ConfigValidationError
from mes_kernel.logging_config import get_logger

_logger = get_logger("config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_SET = "gentanala"


def load_config_set(set_name: str = DEFAULT_SET, config_dir: Path | None = None) -> WorkflowConfigSet:
    """Load, validate and assemble one configuration set.

    Raises:
        FileNotFoundError: If the set directory does not exist.
        ConfigValidationError: If validation reports errors, or if
            assembling the domain objects rejects a value validation
            did not anticipate.
    """
    set_dir = (config_dir or _DEFAULT_CONFIG_DIR) / set_name
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Configuration set not found: {set_dir}")

    documents = load_documents(set_dir)
    validation = validate_documents(documents)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"set_name": set_name, "detail": warning})
    if not validation.is_valid:
        raise ConfigValidationError(set_name, validation.errors)

    try:
        config_set = build_config_set(documents)
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise ConfigValidationError(set_name, [str(exc)]) from exc

    _logger.info(
        "MES_CONFIG_TRACE",
        extra={
            "trace_type": "MES_CONFIG_TRACE",
            "config_set_id": config_set.set_id,
            "config_set_version": config_set.version,
            "checksum": config_set.checksum,
            "blueprint_count": len(config_set.blueprints),
            "material_count": len(config_set.catalog.materials),
            "product_count": len(config_set.catalog.products),
            "warning_count": len(validation.warnings),
        },
    )
    return config_set


def get_workflow_context(
    set_name: str = DEFAULT_SET,
    blueprint_id: str | None = None,
    config_dir: Path | None = None,
) -> WorkflowContext:
    """The runtime entrypoint: a context for one pipeline of a set.

    ``blueprint_id`` defaults to the set's ``default_blueprint``; every
    other pipeline of the set is attached as a linked blueprint.
    """
    return load_config_set(set_name, config_dir).context(blueprint_id)


__all__ = [
    "ConfigDocuments",
    "ConfigValidationResult",
    "DEFAULT_SET",
    "WorkflowConfigSet",
    "build_config_set",
    "compute_checksum",
    "get_workflow_context",
    "load_config_set",
    "load_documents",
    "validate_documents",
    "validate_stage_id_stability",
]
