"""Report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_diff_report`` -- source-vs-target diff grouped by status.
- ``format_conflict_report`` -- target-vs-ledger conflicts.
- ``format_publish_report`` -- post-publish summary, or a preview for
  dry runs.
- ``format_validation_report`` -- front-matter problems per file.
- ``diff_to_json`` / ``conflicts_to_json`` / ``report_to_json`` /
  ``validation_to_json`` -- structured dicts for ``--json`` output.
"""

from __future__ import annotations

import json
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from .models import ChangeKind, DiffStatus, PublishAction

if TYPE_CHECKING:
    from .models import (
        ConflictResult,
        DiffItem,
        DiffResult,
        FieldChange,
        PublishReport,
        ValidationReport,
    )

_CHANGE_MARKS = {
    ChangeKind.ADDED: "+",
    ChangeKind.MODIFIED: "~",
    ChangeKind.REMOVED: "-",
}


def _show(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _format_change(change: FieldChange) -> str:
    mark = _CHANGE_MARKS[change.kind]
    if change.kind == ChangeKind.ADDED:
        detail = _show(change.source_value)
    elif change.kind == ChangeKind.REMOVED:
        detail = _show(change.target_value)
    else:
        detail = (
            f"{_show(change.target_value)} -> {_show(change.source_value)}"
        )
    return f"    {mark} {change.field}: {detail}"


def _item_path(item: DiffItem) -> str:
    return item.source_path or item.target_path or ""


# ------------------------------------------------------------------
# Diff report
# ------------------------------------------------------------------


def format_diff_report(result: DiffResult) -> str:
    """Format a diff as human-readable text.

    Items are listed under their status in the result's order.  Modified
    items show each front-matter change (target value first) and whether
    the body changed.

    Args:
        result: The diff to format.

    Returns:
        Multi-line formatted string.
    """
    s = result.summary
    lines = [
        f"Diff for '{result.content_type}'",
        f"{s.added} added, {s.modified} modified, "
        f"{s.removed} removed, {s.unchanged} unchanged",
        "",
    ]

    groups: dict[DiffStatus, list[DiffItem]] = defaultdict(list)
    for item in result.items:
        groups[item.status].append(item)

    for status, items in groups.items():
        lines.append(f"[{status.value.upper()}]")
        for item in items:
            lines.append(f"  {item.key}  ({_item_path(item)})")
            if status == DiffStatus.MODIFIED:
                lines.extend(_format_change(c) for c in item.changes)
                if item.body_changed:
                    lines.append("    body changed")
        lines.append("")

    if s.added + s.modified + s.removed == 0:
        lines.append("Everything up to date.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Conflict report
# ------------------------------------------------------------------


def format_conflict_report(result: ConflictResult) -> str:
    """Format conflict detection output as human-readable text."""
    if not result.has_conflicts:
        return f"No conflicts ({result.total_checked} target items checked)."

    lines = [
        f"{len(result.conflicts)} conflict(s) "
        f"({result.total_checked} target items checked):"
    ]
    for c in result.conflicts:
        where = f" [{c.target_path}]" if c.target_path else ""
        lines.append(
            f"  {c.conflict_type.value.upper():<14} {c.key}: {c.summary}{where}"
        )
    lines.append("")
    lines.append(
        "Review the target changes, then re-run with --force to overwrite."
    )
    return "\n".join(lines)


# ------------------------------------------------------------------
# Publish report
# ------------------------------------------------------------------


def _format_dry_run(report: PublishReport) -> str:
    lines = [
        "DRY RUN -- No changes will be made",
        f"Content type: {report.content_type}",
        "",
    ]

    groups: dict[PublishAction, list[str]] = defaultdict(list)
    for r in report.results:
        if r.success:
            groups[r.action].append(f"  {r.key} -> {r.target_path}")

    display_order = [
        PublishAction.CREATE,
        PublishAction.UPDATE,
        PublishAction.CONFLICT,
        PublishAction.ORPHAN,
    ]
    for action in display_order:
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        lines.extend(groups[action])
        lines.append("")

    skip_count = len(groups.get(PublishAction.SKIP, []))
    if skip_count > 0:
        lines.append(f"Skipped: {skip_count} items (unchanged)")
        lines.append("")

    if not any(a in groups for a in display_order):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_publish_report(report: PublishReport) -> str:
    """Format a publish report as human-readable text.

    Dry runs get a preview grouped by action.  Otherwise sections are only
    included when they contain at least one result, and skipped items are
    summarised by count only.

    Args:
        report: The completed publish report.

    Returns:
        Multi-line formatted string.
    """
    if report.dry_run:
        return _format_dry_run(report)

    lines = [f"Publish report for '{report.content_type}'"]
    lines.append(f"Started: {report.started_at.isoformat()}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at.isoformat()}")
    lines.append("")

    lines.append(
        f"Processed {len(report.results)} items: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.blocked)} conflicts, {len(report.errors)} errors"
    )
    lines.append("")

    if report.created:
        lines.append("Created:")
        for r in report.created:
            lines.append(f"  {r.source_path} -> {r.target_path}")
        lines.append("")

    if report.updated:
        lines.append("Updated:")
        for r in report.updated:
            lines.append(f"  {r.source_path} -> {r.target_path}")
        lines.append("")

    if report.blocked:
        lines.append("Not written (target changed since last sync):")
        for r in report.blocked:
            lines.append(f"  {r.key} [{r.target_path}]")
        lines.append("")

    if report.orphaned:
        lines.append("Orphaned (source removed, target kept):")
        for r in report.orphaned:
            lines.append(f"  {r.key} [{r.target_path}]")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.key}: {r.error}")
        lines.append("")

    if report.skipped:
        lines.append(f"Skipped: {len(report.skipped)} items")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Validation report
# ------------------------------------------------------------------


def format_validation_report(report: ValidationReport) -> str:
    """Format front-matter validation output as human-readable text."""
    lines = [
        f"Validation for '{report.content_type}' "
        f"({report.total_files} files checked)"
    ]
    if report.valid:
        lines.append(f"  All {report.total_files} files valid")
    else:
        lines.append(
            f"  {report.valid_files} valid, {report.invalid_files} invalid"
        )
        for file in report.files:
            lines.append("")
            lines.append(f"  {file.path}:")
            for issue in file.errors:
                lines.append(f"    x {issue.field}: {issue.message}")
                if issue.suggestion:
                    lines.append(f"      {issue.suggestion}")

    if report.warnings:
        lines.append("")
        lines.append("Warnings:")
        for warning in report.warnings:
            lines.append(
                f"  ! {warning.message} ({', '.join(warning.files)})"
            )

    lines.append("")
    if report.valid:
        lines.append("Validation passed.")
    else:
        lines.append("Validation failed. Fix errors before pushing.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def diff_to_json(result: DiffResult) -> dict:
    """Convert a diff to a structured dict for JSON serialisation."""
    data = result.model_dump(mode="json")
    data["summary"]["total"] = result.summary.total
    return data


def conflicts_to_json(result: ConflictResult) -> dict:
    """Convert a conflict result to a structured dict for JSON serialisation."""
    return result.model_dump(mode="json")


def report_to_json(report: PublishReport) -> dict:
    """Convert a publish report to a structured dict for JSON serialisation.

    Args:
        report: The publish report.

    Returns:
        Dict with run info, counts, per-result details and conflicts.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "key": r.key,
            "action": r.action.value,
            "success": r.success,
            "source_path": r.source_path,
            "target_path": r.target_path,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "content_type": report.content_type,
        "dry_run": report.dry_run,
        "force": report.force,
        "success": report.success,
        "started_at": report.started_at.isoformat(),
        "completed_at": (
            report.completed_at.isoformat() if report.completed_at else None
        ),
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "updated": len(report.updated),
            "skipped": len(report.skipped),
            "conflicts": len(report.blocked),
            "orphaned": len(report.orphaned),
            "errors": len(report.errors),
        },
        "results": results_list,
        "conflicts": conflicts_to_json(report.conflicts),
    }


def validation_to_json(report: ValidationReport) -> dict:
    """Convert a validation report to a structured dict for JSON serialisation."""
    data = report.model_dump(mode="json")
    data["valid"] = report.valid
    data["valid_files"] = report.valid_files
    data["invalid_files"] = report.invalid_files
    return data
