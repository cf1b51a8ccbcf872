"""
lpm query command (-Q, -Qi).

Show unit status grouped by activation state, or the details of one unit.
"""

import sys
from collections.abc import Mapping
from typing import Any

from lazypack.unit.registry import TriggerKind, UnitRecord, UnitState
from lpm.commands import build_manager

ICONS = {
    "configured": "●",
    "pending": "⏳",
    "not_loaded": "○",
    "failed": "✗",
    "disabled": "-",
}


def query_command(args: Any) -> int:
    """
    Execute query command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    manager, _ = build_manager(args)
    snapshot = manager.get_registry_snapshot()

    if args.info:
        if not args.targets:
            print("Error: No targets specified", file=sys.stderr)
            print("Usage: lpm -Qi <unit>", file=sys.stderr)
            return 1
        missing = [t for t in args.targets if t not in snapshot]
        if missing:
            print(f"Error: Unknown unit(s): {', '.join(missing)}", file=sys.stderr)
            return 1
        for target in args.targets:
            print("\n".join(format_unit(snapshot[target])))
            print()
        return 0

    installed = {unit.id for unit in manager.installer.list_installed()}
    print("\n".join(format_status(snapshot, installed)))
    return 0


def format_status(snapshot: Mapping[str, UnitRecord], installed: set[str]) -> list[str]:
    """
    Render a status report.

    Args:
        snapshot: Registry snapshot
        installed: Ids present on disk

    Returns:
        Report lines
    """
    groups: dict[str, list[str]] = {key: [] for key in ICONS}

    for unit_id, record in snapshot.items():
        if not record.metadata.enabled:
            groups["disabled"].append(unit_id)
        elif record.state == UnitState.CONFIGURED:
            groups["configured"].append(unit_id)
        elif record.state == UnitState.FAILED:
            groups["failed"].append(f"{unit_id}: {record.error}")
        elif record.state == UnitState.LAZY_PENDING:
            reasons = _trigger_summary(record)
            groups["pending"].append(f"{unit_id} [{reasons}]" if reasons else unit_id)
        else:
            groups["not_loaded"].append(unit_id)

    lines = [
        "Lazypack Status",
        "===============",
        f"Units managed: {len(snapshot)}",
        f"Units on disk: {len(installed)}",
        "",
    ]

    titles = {
        "configured": "Configured",
        "pending": "Pending",
        "not_loaded": "Not Loaded",
        "failed": "Failed",
        "disabled": "Disabled",
    }
    for key, title in titles.items():
        entries = groups[key]
        if not entries:
            continue
        lines.append(f"{title} ({len(entries)}):")
        lines.extend(f"  {ICONS[key]} {entry}" for entry in sorted(entries))
        lines.append("")

    return lines


def format_unit(record: UnitRecord) -> list[str]:
    """Render the details of one unit."""
    spec, meta = record.spec, record.metadata
    lines = [
        f"Name          : {spec.id}",
        f"Source        : {spec.source_locator}",
        f"Version       : {spec.version_ref or '-'}",
        f"Priority      : {spec.priority}",
        f"Enabled       : {'yes' if meta.enabled else 'no'}",
        f"Lazy          : {'yes' if meta.lazy else 'no'}",
        f"Triggers      : {_trigger_summary(record) or '-'}",
        f"Depends On    : {', '.join(map(str, meta.dependencies)) or '-'}",
        f"State         : {record.state.value}",
    ]
    if record.error is not None:
        lines.append(f"Error         : {record.error}")
    return lines


def _trigger_summary(record: UnitRecord) -> str:
    parts = []
    for trigger in record.metadata.triggers:
        if trigger.kind == TriggerKind.DEFERRED_READY:
            parts.append("after startup")
        else:
            parts.append(f"{trigger.kind.value}: {', '.join(trigger.values)}")
    return "; ".join(parts)
