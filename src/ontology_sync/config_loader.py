"""
Configuration file loading for ontology_sync.

Config files are YAML.  This module finds them by convention, resolves
``!include`` directives, interpolates ``${VAR}`` references from the
environment and merges the files so that the project file wins.

Usage:
    from ontology_sync.config_loader import load_config

    config = load_config()                      # discovered files
    config = load_config(Path("sync.yml"))      # explicit file only
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from ontology_sync.config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ONTOLOGY_SYNC_CONFIG"
PROJECT_CONFIG_DIR = ".ontology_sync"

# ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    An unset or empty variable becomes its default, or ``""`` without one.
    An unterminated ``${`` is left as is.
    """

    def _substitute(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_substitute, value)


def _interpolate(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with an ``!include`` tag.

    A subclass keeps the global ``yaml.SafeLoader`` untouched.  Each
    loader carries the chain of files being loaded so that circular
    includes are reported instead of recursing forever.
    """

    include_chain: tuple[Path, ...] = ()


def _construct_include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include``, relative to the including file."""
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    if target in loader.include_chain:
        chain = " -> ".join(str(p) for p in (*loader.include_chain, target))
        raise ValueError(f"Circular include detected: {chain}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {loader.name})"
        )
    return load_yaml_file(target, _chain=loader.include_chain)


ConfigLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = Path(path).resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.include_chain = (*_chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``ONTOLOGY_SYNC_CONFIG`` env var (explicit single path)
        2. ``.ontology_sync/config.yml`` in CWD
        3. ``.ontology_sync/config.yaml`` in CWD
        4. ``~/.config/ontology_sync/config.yml``
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "ontology_sync" / "config.yml")

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# ontology-sync configuration
#
# Values may reference environment variables: ${VAR} or ${VAR:-default}.
# Other YAML files can be pulled in with: key: !include other.yml
#
# sync:
#   retry_count: 3
#   retry_delay: 1.0
#   timeout: 30
#   history_limit: 100
#   state_dir: .ontology_sync/state
#
# importer:
#   conflict_strategy: ask      # ask | overwrite | skip
#   validate: true
#   critical_fields:
#     classes: [parent]
#     properties: [type, cardinality]
#
# store:
#   path: .ontology_sync/ontology.json
#
# sources:
#   core:
#     name: Core ontology
#     location: https://example.com/ontology/core.yml
#     type: url                 # url | file
#     default_strategy: ask     # overwrite | merge | keep-local | ask
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the default project path.

    Does not create anything; see ``ensure_config()``.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter file if none exists.

    Args:
        target: Where to create the starter file.  Defaults to
            ``resolve_config_path()``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config(paths: list[Path] | None = None) -> dict[str, Any]:
    """Load and merge config files into one dict.

    Files are applied from lowest precedence to highest and each file's
    top-level keys replace earlier ones (no deep merge).  Interpolation
    runs after the merge.

    Args:
        paths: Files in precedence order, highest first.  Defaults to
            ``discover_config_files()``.

    Returns:
        The merged dict; empty when there is nothing to load.
    """
    if paths is None:
        paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate(merged)


def load_config(path: Path | None = None) -> UnifiedConfig:
    """Load, merge and validate configuration.

    Args:
        path: Use only this file instead of discovering files.

    Raises:
        FileNotFoundError: If *path* does not exist.
        pydantic.ValidationError: If the merged config is invalid.
    """
    if path is not None:
        path = Path(path).expanduser()
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        return build_config(load_hierarchical_config([path]))
    return build_config(load_hierarchical_config())
