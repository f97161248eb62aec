"""Report formatting functions.

Provides human-readable and machine-readable output for imports and syncs:

- ``format_import_preview`` -- change set grouped by kind.
- ``format_import_result`` -- post-import summary with errors.
- ``format_sync_result`` -- outcome of a check or sync.
- ``format_history`` -- a source's audit trail.
- ``*_to_json`` -- structured dicts for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ontology_sync.importer.models import ImportPreview, ImportResult
    from ontology_sync.sync.models import SyncPreview, SyncResult, SyncState


# ------------------------------------------------------------------
# Import
# ------------------------------------------------------------------


def format_import_preview(preview: ImportPreview) -> str:
    """Format an import change set as human-readable text.

    Sections are only included when they contain at least one entry.
    Conflicting updates are marked with ``!`` in the update lists and
    explained in their own section.

    Args:
        preview: The change set.

    Returns:
        Multi-line formatted string.
    """
    summary = preview.summary
    lines = [
        f"{summary.total_new} new, {summary.total_updated} updated, "
        f"{summary.total_conflicts} conflicts"
    ]
    if not preview.has_changes:
        lines.append("No changes.")
        return "\n".join(lines)
    lines.append("")

    conflicted = {(c.type, c.name) for c in preview.conflicts}

    if preview.new_properties:
        lines.append("New properties:")
        for p in preview.new_properties:
            lines.append(f"  + {p.name} ({p.type}, {p.cardinality})")
        lines.append("")

    if preview.new_classes:
        lines.append("New classes:")
        for c in preview.new_classes:
            parent = f" < {c.parent}" if c.parent else ""
            lines.append(f"  + {c.name}{parent}")
        lines.append("")

    if preview.updated_properties:
        lines.append("Updated properties:")
        for u in preview.updated_properties:
            mark = "!" if ("property", u.name) in conflicted else "~"
            lines.append(f"  {mark} {u.name}: {', '.join(u.changes)}")
        lines.append("")

    if preview.updated_classes:
        lines.append("Updated classes:")
        for u in preview.updated_classes:
            mark = "!" if ("class", u.name) in conflicted else "~"
            lines.append(f"  {mark} {u.name}: {', '.join(u.changes)}")
        lines.append("")

    if preview.conflicts:
        lines.append("Conflicts:")
        for c in preview.conflicts:
            lines.append(f"  {c.type} {c.name}: {c.reason}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_import_result(result: ImportResult) -> str:
    """Format an import result, including the preview it was based on."""
    if result.dry_run:
        header = "DRY RUN -- No changes were made"
    elif result.success:
        header = "Import succeeded"
    else:
        header = "Import failed"

    lines = [header, format_import_preview(result.preview), ""]
    if not result.dry_run:
        lines.append(
            f"Applied {result.applied.classes} classes and "
            f"{result.applied.properties} properties "
            f"in {result.duration:.2f}s"
        )

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        for e in result.errors:
            where = f" {e.item}:" if e.item else ""
            lines.append(f"  [{e.code}]{where} {e.message}")

    return "\n".join(lines).rstrip()


def import_result_to_json(result: ImportResult) -> dict[str, Any]:
    return result.model_dump(mode="json")


# ------------------------------------------------------------------
# Sync
# ------------------------------------------------------------------


def _format_sync_preview(preview: SyncPreview) -> list[str]:
    groups = [
        ("Classes to add", "+", preview.classes_to_add),
        ("Classes to update", "~", preview.classes_to_update),
        ("Classes to remove", "-", preview.classes_to_remove),
        ("Properties to add", "+", preview.properties_to_add),
        ("Properties to update", "~", preview.properties_to_update),
        ("Properties to remove", "-", preview.properties_to_remove),
    ]
    lines: list[str] = []
    for title, mark, names in groups:
        if not names:
            continue
        lines.append(f"{title}:")
        lines.extend(f"  {mark} {name}" for name in names)
    return lines


def format_sync_result(
    source_id: str, result: SyncResult, dry_run: bool = False
) -> str:
    """Format the outcome of a check or sync for *source_id*.

    Args:
        source_id: The source that was checked or synced.
        result: The engine's result.
        dry_run: Label the output as a dry run.

    Returns:
        Multi-line formatted string.
    """
    header = f"Source '{source_id}'"
    if dry_run:
        header += " (DRY RUN)"
    lines = [header]

    if not result.has_updates and result.success:
        lines.append("Up to date.")
        return "\n".join(lines)

    if result.has_updates:
        lines.append("Updates available.")
    if result.preview is not None:
        lines.extend(_format_sync_preview(result.preview))
    if result.applied is not None:
        lines.append(
            f"Applied {result.applied.classes} classes and "
            f"{result.applied.properties} properties"
        )

    if result.errors:
        code = f" [{result.error_code}]" if result.error_code else ""
        lines.append(f"Errors{code}:")
        lines.extend(f"  {message}" for message in result.errors)

    return "\n".join(lines)


def sync_result_to_json(source_id: str, result: SyncResult) -> dict[str, Any]:
    return {
        "source_id": source_id,
        "success": result.success,
        **result.model_dump(mode="json"),
    }


# ------------------------------------------------------------------
# State
# ------------------------------------------------------------------


def format_history(state: SyncState | None, limit: int | None = None) -> str:
    """Format a source's sync state and its most recent history entries.

    Args:
        state: The stored state, or ``None`` if the source has none.
        limit: Show at most this many history entries (newest first).
    """
    if state is None:
        return "No sync state."

    lines = [
        f"Source: {state.source_id}",
        f"Last synced: {state.last_synced_at or 'never'}",
        f"Last checksum: {state.last_checksum or '-'}",
        f"Local modifications: {'yes' if state.local_modifications else 'no'}",
    ]
    entries = state.sync_history[:limit] if limit else state.sync_history
    if entries:
        lines.append("")
        lines.append("History:")
        for entry in entries:
            lines.append(
                f"  {entry.timestamp}  {entry.action:<8} "
                f"{entry.result:<9} {entry.details}"
            )
    return "\n".join(lines)


def state_to_json(state: SyncState | None) -> dict[str, Any] | None:
    return state.model_dump(mode="json") if state is not None else None
