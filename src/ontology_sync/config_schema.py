"""Unified configuration schema for ontology_sync.

Defines Pydantic models for the config file, with dedicated sections for
sync behaviour, the importer, the entity store, registered sources and
logging.  Includes adapter functions that turn the validated config into
the runtime objects the CLI wires together.

Usage:
    from ontology_sync.config_schema import build_config, to_import_options

    raw = load_hierarchical_config()
    unified = build_config(raw)
    options = to_import_options(unified, cli_overrides={"dry_run": True})
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ontology_sync.importer.diff import CriticalFields
from ontology_sync.importer.models import ImportOptions
from ontology_sync.sync.models import SyncSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SyncConfig(BaseModel):
    """Sync engine settings."""

    retry_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Fetch attempts per check or sync (1-10)",
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Base backoff delay in seconds (attempt n waits n * delay)",
    )
    timeout: float = Field(
        default=30.0, gt=0, description="Per-attempt fetch timeout in seconds"
    )
    history_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="History entries kept per source",
    )
    state_dir: str = Field(
        default=".ontology_sync/state",
        description="Directory holding per-source sync state files",
    )

    model_config = {"frozen": True}


class ImporterConfig(BaseModel):
    """Template import settings.

    Attributes:
        conflict_strategy: ``ask`` blocks on conflicts, ``overwrite``
            applies them, ``skip`` leaves conflicting items untouched.
        validate_template: Run template validation before comparing.
        critical_fields: Fields whose change is reported as a conflict.
    """

    conflict_strategy: Literal["ask", "overwrite", "skip"] = "ask"
    validate_template: bool = Field(default=True, alias="validate")
    critical_fields: CriticalFields = Field(default_factory=CriticalFields)

    model_config = {"frozen": True, "populate_by_name": True}


class StoreConfig(BaseModel):
    """Entity store location."""

    path: str = Field(
        default=".ontology_sync/ontology.json",
        description="JSON file holding the local ontology",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    sync: SyncConfig = Field(default_factory=SyncConfig)
    importer: ImporterConfig = Field(default_factory=ImporterConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sources: list[SyncSource] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    @field_validator("sources")
    @classmethod
    def _unique_source_ids(cls, sources: list[SyncSource]) -> list[SyncSource]:
        seen: set[str] = set()
        for source in sources:
            if source.id in seen:
                raise ValueError(f"Duplicate source id: {source.id}")
            seen.add(source.id)
        return sources

    def get_source(self, source_id: str) -> SyncSource | None:
        for source in self.sources:
            if source.id == source_id:
                return source
        return None


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.  A ``sources`` mapping keyed by id is
    accepted as well as a list.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    data = dict(raw_data)
    sources = data.get("sources")
    if isinstance(sources, dict):
        data["sources"] = [
            {"id": source_id, **(entry or {})}
            for source_id, entry in sources.items()
        ]
        logger.debug("Expanded %d sources from mapping form", len(sources))

    return UnifiedConfig(**data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> ImportOptions
# ---------------------------------------------------------------------------


def to_import_options(
    unified: UnifiedConfig,
    cli_overrides: dict | None = None,
) -> ImportOptions:
    """Build ``ImportOptions`` from the importer section, applying CLI
    overrides on top.

    The precedence applied here is:
        CLI override > unified config value

    CLI overrides dict keys: dry_run, conflict_strategy, validate.
    ``None`` values are ignored.
    """
    base = ImportOptions(
        conflict_strategy=unified.importer.conflict_strategy,
        validate=unified.importer.validate_template,
    )
    return base.merged(**(cli_overrides or {}))
