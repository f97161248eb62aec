"""Command-line interface for ontology-sync.

Commands::

    ontology-sync preview FILE
    ontology-sync import FILE [--dry-run] [--conflict-strategy S] [--no-validate]
    ontology-sync check SOURCE
    ontology-sync sync SOURCE [--strategy S] [--dry-run] [--timeout SECONDS]
    ontology-sync state show SOURCE [--limit N]
    ontology-sync state clear SOURCE
    ontology-sync state list

Human-readable output goes to stdout, logs to stderr.  ``--json`` switches
stdout to a single JSON document.  Exit status is 0 on success and 1 on
any failure.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import pydantic
from dotenv import load_dotenv

from ontology_sync import __version__
from ontology_sync.config_loader import load_config
from ontology_sync.config_schema import UnifiedConfig, to_import_options
from ontology_sync.errors import OntologySyncError
from ontology_sync.file_handler import read_file_async
from ontology_sync.importer import (
    ImportProgress,
    OntologyImporter,
    TemplateDiffer,
)
from ontology_sync.logger import setup_logging
from ontology_sync.ontology.parser import YamlTemplateParser
from ontology_sync.reporter import (
    format_history,
    format_import_preview,
    format_import_result,
    format_sync_result,
    import_result_to_json,
    state_to_json,
    sync_result_to_json,
)
from ontology_sync.store import JsonFileEntityStore
from ontology_sync.sync import (
    JsonFileSyncStateStorage,
    SourceContentFetcher,
    SyncEngine,
    SyncStateStore,
    SyncStrategy,
    importer_apply_step,
    store_local_content,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _log_progress(progress: ImportProgress) -> None:
    logger.info(
        "[%s %d/%d] %s",
        progress.phase,
        progress.current,
        progress.total,
        progress.message,
    )


def build_importer(
    config: UnifiedConfig, cli_overrides: dict | None = None
) -> OntologyImporter:
    """Create an importer writing to the configured JSON store."""
    options = to_import_options(config, cli_overrides).merged(
        on_progress=_log_progress
    )
    return OntologyImporter(
        YamlTemplateParser(),
        JsonFileEntityStore(Path(config.store.path)),
        options=options,
        differ=TemplateDiffer(config.importer.critical_fields),
    )


def build_engine(config: UnifiedConfig) -> SyncEngine:
    """Create a sync engine with every configured source registered."""
    importer = build_importer(config)
    engine = SyncEngine(
        SourceContentFetcher(),
        state_store=SyncStateStore(
            JsonFileSyncStateStorage(Path(config.sync.state_dir)),
            history_limit=config.sync.history_limit,
        ),
        apply_step=importer_apply_step(importer),
        local_content=store_local_content(importer.store),
        retry_count=config.sync.retry_count,
        retry_delay=config.sync.retry_delay,
        default_timeout=config.sync.timeout,
    )
    for source in config.sources:
        engine.register_source(source)
    return engine


def _emit(args: argparse.Namespace, text: str, payload: Any) -> None:
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        print(text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _cmd_preview(args: argparse.Namespace, config: UnifiedConfig) -> int:
    content, _, _ = await read_file_async(args.file)
    preview = await build_importer(config).preview(content)
    _emit(args, format_import_preview(preview), preview.model_dump(mode="json"))
    return 0


async def _cmd_import(args: argparse.Namespace, config: UnifiedConfig) -> int:
    content, _, _ = await read_file_async(args.file)
    importer = build_importer(
        config,
        {
            "dry_run": args.dry_run or None,
            "conflict_strategy": args.conflict_strategy,
            "validate": False if args.no_validate else None,
        },
    )
    result = await importer.import_template(content)
    _emit(args, format_import_result(result), import_result_to_json(result))
    return 0 if result.success else 1


async def _cmd_check(args: argparse.Namespace, config: UnifiedConfig) -> int:
    result = await build_engine(config).check_for_updates(
        args.source, timeout=args.timeout
    )
    _emit(
        args,
        format_sync_result(args.source, result),
        sync_result_to_json(args.source, result),
    )
    return 0 if result.success else 1


async def _cmd_sync(args: argparse.Namespace, config: UnifiedConfig) -> int:
    result = await build_engine(config).sync(
        args.source,
        strategy=args.strategy,
        dry_run=args.dry_run,
        timeout=args.timeout,
    )
    _emit(
        args,
        format_sync_result(args.source, result, dry_run=args.dry_run),
        sync_result_to_json(args.source, result),
    )
    return 0 if result.success else 1


async def _cmd_state(args: argparse.Namespace, config: UnifiedConfig) -> int:
    engine = build_engine(config)

    if args.state_command == "list":
        source_ids = await engine.state_store.list_source_ids()
        _emit(args, "\n".join(source_ids) or "No sync state.", source_ids)
        return 0

    if args.state_command == "clear":
        await engine.clear_sync_state(args.source)
        _emit(
            args,
            f"Cleared sync state for '{args.source}'",
            {"source_id": args.source, "cleared": True},
        )
        return 0

    state = await engine.get_sync_state(args.source)
    _emit(args, format_history(state, args.limit), state_to_json(state))
    return 0


_COMMANDS = {
    "preview": _cmd_preview,
    "import": _cmd_import,
    "check": _cmd_check,
    "sync": _cmd_sync,
    "state": _cmd_state,
}


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ontology-sync",
        description="Import ontology templates and keep them in sync with their sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what importing a template would change
  ontology-sync preview people.yml

  # Import, replacing conflicting definitions
  ontology-sync import people.yml --conflict-strategy overwrite

  # Check and sync a source registered in .ontology_sync/config.yml
  ontology-sync check core
  ontology-sync sync core --strategy overwrite

  # Inspect a source's sync history as JSON
  ontology-sync --json state show core
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file to use instead of discovering one "
        "(default search: $ONTOLOGY_SYNC_CONFIG, ./.ontology_sync/config.yml, "
        "~/.config/ontology_sync/config.yml)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--log-file", help="Also append log records to this file"
    )
    parser.add_argument(
        "--json", action="store_true", help="Write results to stdout as JSON"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ontology-sync version {__version__}",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    preview = commands.add_parser(
        "preview", help="Show the changes a template would make"
    )
    preview.add_argument("file", help="Template file (YAML or JSON)")

    import_ = commands.add_parser("import", help="Import a template")
    import_.add_argument("file", help="Template file (YAML or JSON)")
    import_.add_argument(
        "--dry-run", action="store_true", help="Preview only, apply nothing"
    )
    import_.add_argument(
        "--conflict-strategy",
        choices=["ask", "overwrite", "skip"],
        help="How to treat conflicting updates (default from config: ask)",
    )
    import_.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip template validation",
    )

    check = commands.add_parser(
        "check", help="Check a source for updates without applying them"
    )
    check.add_argument("source", help="Source id")
    check.add_argument(
        "--timeout", type=float, help="Per-attempt fetch timeout in seconds"
    )

    sync = commands.add_parser("sync", help="Sync a source into the store")
    sync.add_argument("source", help="Source id")
    sync.add_argument(
        "--strategy",
        choices=[s.value for s in SyncStrategy],
        help="Overrides the source's default strategy",
    )
    sync.add_argument(
        "--dry-run", action="store_true", help="Preview only, apply nothing"
    )
    sync.add_argument(
        "--timeout", type=float, help="Per-attempt fetch timeout in seconds"
    )

    state = commands.add_parser("state", help="Inspect or clear sync state")
    state_commands = state.add_subparsers(dest="state_command", required=True)
    show = state_commands.add_parser("show", help="Show state and history")
    show.add_argument("source", help="Source id")
    show.add_argument(
        "--limit", type=int, default=20, help="History entries to show"
    )
    clear = state_commands.add_parser("clear", help="Delete a source's state")
    clear.add_argument("source", help="Source id")
    state_commands.add_parser("list", help="List sources with stored state")

    return parser


async def main(args: argparse.Namespace) -> int:
    """Load configuration, configure logging and run the chosen command."""
    try:
        config = load_config(args.config)
    except (OSError, ValueError, pydantic.ValidationError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    if config.logging.level:
        os.environ.setdefault("LOG_LEVEL", config.logging.level)
    setup_logging(
        debug=args.debug,
        log_file=args.log_file or config.logging.file,
        debug_format="json" if args.json and args.debug else "text",
    )
    logger.debug("Running command %s", args.command)

    try:
        return await _COMMANDS[args.command](args, config)
    except (OntologySyncError, OSError, ValueError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run(argv: list[str] | None = None) -> None:
    """Console entry point."""
    # .env first so ${VAR} references in config files can use its values
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        exit_code = asyncio.run(main(args))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
