#!/usr/bin/env python3
"""
marksync - command-line interface

Preview and run sync cycles over a snapshot directory, and manage the
backup log and its retention policies.
"""
import sys
import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional
from rich.console import Console
from rich.table import Table

from marksync.config import init_config, get_config
from marksync.backups import BackupStore, create_backup_metadata
from marksync.constants import (
    AUTO_STRATEGIES,
    BACKUP_STATUSES,
    BACKUP_TYPES,
    BACKUP_TYPE_MANUAL,
    BACKUP_STATUS_SUCCESS,
    STRATEGY_MANUAL,
    SYNC_SCOPES,
)
from marksync.models import BackupRecord
from marksync.preview import generate_sync_preview, preview_summary
from marksync.retention import (
    enforce_retention_policy,
    get_backups_to_remove,
    get_retention_summary,
    record_backup,
)
from marksync.snapshots import JsonSnapshotStore
from marksync.sync import run_sync_cycle

logger = logging.getLogger(__name__)


console = Console()

SEVERITY_STYLES = {"high": "red", "medium": "yellow", "low": "green"}


def _snapshot_store(args) -> JsonSnapshotStore:
    return JsonSnapshotStore(args.snapshots or get_config().snapshot_dir)


def _backup_store(args) -> BackupStore:
    return BackupStore(args.db) if args.db else BackupStore()


def output_backups(backups: List[BackupRecord], format: str = "table", title: str = "Backups"):
    """Output backups in the specified format."""
    if format == "json":
        print(json.dumps([b.to_dict() for b in backups], indent=2))
        return

    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Schedule", style="blue")
    table.add_column("Status")
    table.add_column("Timestamp", style="green")
    table.add_column("Content", style="white")

    for b in backups:
        status_style = "green" if b.status == BACKUP_STATUS_SUCCESS else "red"
        table.add_row(
            b.id,
            b.type,
            b.schedule_id or "-",
            f"[{status_style}]{b.status}[/{status_style}]",
            b.timestamp_utc.strftime("%Y-%m-%d %H:%M:%S"),
            (b.content_ref or "")[:40],
        )

    console.print(table)


def cmd_preview(args):
    """Show what a sync would change without committing anything."""
    config = get_config()
    scope = args.scope or config.default_scope
    result = generate_sync_preview(_snapshot_store(args), scope)

    if args.output == "json":
        print(json.dumps(result.to_dict(), indent=2))
        if not result.success:
            sys.exit(1)
        return

    if not result.success:
        console.print(f"[red]Preview unavailable: {result.message}[/red]")
        sys.exit(1)

    preview = result.preview
    summary = preview_summary(preview)
    console.print(f"[bold]Sync preview[/bold] ({preview.scope}): {summary['summary']}")

    changes = Table(title="Changes", show_header=False, box=None)
    changes.add_column("Kind", style="cyan bold")
    changes.add_column("Count", style="white")
    for key, value in preview.changes.items():
        changes.add_row(key.replace("_", " "), str(value))
    console.print(changes)

    conflicts = preview.details.conflicts
    if conflicts:
        table = Table(title=f"Conflicts ({len(conflicts)})")
        table.add_column("ID", style="cyan")
        table.add_column("Severity")
        table.add_column("Type", style="magenta")
        table.add_column("Local", style="green")
        table.add_column("Remote", style="blue")
        for c in conflicts:
            style = SEVERITY_STYLES[c.severity]
            table.add_row(
                c.id,
                f"[{style}]{c.severity}[/{style}]",
                c.type,
                (c.local.title or c.local.url or "")[:40],
                (c.remote.title or c.remote.url or "")[:40],
            )
        console.print(table)

    if not args.quiet:
        for rec in preview.to_dict()["recommendations"]:
            console.print(f"[yellow]{rec['type']}:[/yellow] {rec['message']}")


def cmd_sync(args):
    """Run a full sync cycle and commit it."""
    config = get_config()
    scope = args.scope or config.default_scope
    strategy = args.strategy or config.default_strategy

    result = run_sync_cycle(_snapshot_store(args), scope, strategy)

    if args.output == "json":
        print(json.dumps(result.to_dict(), indent=2))
    elif not result.success:
        console.print(f"[red]Sync failed: {result.message}[/red]")
    elif not result.committed:
        console.print("[green]Already in sync[/green]")
    else:
        console.print(f"[green]Synced ({scope}, {strategy}): "
                      f"{len(result.resolutions)} conflicts resolved[/green]")
        if result.pending:
            console.print(f"[yellow]{len(result.pending)} conflicts left for manual resolution: "
                          f"{', '.join(c.id for c in result.pending)}[/yellow]")

    if not result.success:
        sys.exit(1)


def cmd_backup(args):
    """Backup log operations."""
    store = _backup_store(args)
    config = get_config()

    if args.backup_command == "list":
        if args.schedule:
            backups = store.get_backups_by_schedule(args.schedule)
        elif args.type:
            backups = store.get_backups_by_type(args.type)
        else:
            backups = store.get_all_backups()
        output_backups(backups, args.output)

    elif args.backup_command == "add":
        record = create_backup_metadata(
            type=args.type,
            schedule_id=args.schedule,
            status=args.status,
            content_ref=args.ref,
            id=args.id,
            description=args.description,
        )
        saved, removed = record_backup(store, record, default_retention=config.default_retention_count)
        if args.output == "json":
            print(json.dumps({"backup": saved.to_dict(), "removed": removed}, indent=2))
        elif not args.quiet:
            console.print(f"[green]Recorded backup {saved.id}[/green]")
            if removed:
                console.print(f"[yellow]Retention removed {removed} older backups[/yellow]")

    elif args.backup_command == "delete":
        if store.delete_backup(args.id):
            if not args.quiet:
                console.print(f"[green]Deleted backup {args.id}[/green]")
        else:
            console.print(f"[red]Backup not found: {args.id}[/red]")
            sys.exit(1)

    elif args.backup_command == "stats":
        stats = store.get_backup_stats()
        recent = stats["most_recent_backup"]
        if args.output == "json":
            data = dict(stats, most_recent_backup=recent.to_dict() if recent else None)
            print(json.dumps(data, indent=2))
            return
        table = Table(title="Backup statistics", show_header=False, box=None)
        table.add_column("Field", style="cyan bold")
        table.add_column("Value", style="white")
        table.add_row("Total", str(stats["total"]))
        for status, count in stats["status_counts"].items():
            table.add_row(f"Status: {status}", str(count))
        for backup_type, count in stats["type_counts"].items():
            table.add_row(f"Type: {backup_type}", str(count))
        table.add_row("Most recent success", recent.id if recent else "(none)")
        console.print(table)


def cmd_retention(args):
    """Retention policy operations."""
    store = _backup_store(args)

    if args.retention_command == "set":
        store.set_retention_policy(args.schedule, args.count)
        if not args.quiet:
            label = "unlimited" if args.count < 0 else str(args.count)
            console.print(f"[green]Retention for {args.schedule}: {label}[/green]")

    elif args.retention_command == "enforce":
        count = args.count
        if count is None:
            count = store.get_retention_policy(args.schedule)
        if count is None:
            count = get_config().default_retention_count

        if args.dry_run:
            doomed = get_backups_to_remove(store, args.schedule, count)
            output_backups(doomed, args.output, title=f"Would remove ({len(doomed)})")
            return

        removed = enforce_retention_policy(store, args.schedule, count)
        if args.output == "json":
            print(json.dumps({"schedule_id": args.schedule, "removed": removed}))
        elif not args.quiet:
            console.print(f"[green]Removed {removed} backups from {args.schedule}[/green]")

    elif args.retention_command == "show":
        summary = get_retention_summary(store, args.schedule)
        oldest, newest = summary["oldest_backup"], summary["newest_backup"]
        if args.output == "json":
            data = dict(summary,
                        oldest_backup=oldest.to_dict() if oldest else None,
                        newest_backup=newest.to_dict() if newest else None)
            print(json.dumps(data, indent=2))
            return
        count = summary["retention_count"]
        console.print(f"[bold]{args.schedule}[/bold]")
        console.print(f"  Retention: {'unset' if count is None else ('unlimited' if count < 0 else count)}")
        console.print(f"  Backups: {summary['total_backups']}")
        console.print(f"  Oldest: {oldest.id if oldest else '(none)'}")
        console.print(f"  Newest: {newest.id if newest else '(none)'}")


def cmd_config(args):
    """Manage configuration."""
    config = get_config()

    if args.action == "show":
        if args.key:
            if not hasattr(config, args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
            print(getattr(config, args.key))
        else:
            from dataclasses import asdict
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "init":
        config_path = Path.home() / ".config" / "marksync" / "config.toml"
        config.save(config_path)
        console.print(f"[green]Created config at {config_path}[/green]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="marksync",
        description="marksync: bookmark sync previews, conflict resolution and backup retention",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  marksync preview --scope global
  marksync sync --strategy merge
  marksync backup add --type scheduled --schedule daily --ref drive:abc123
  marksync backup list --schedule daily
  marksync retention set daily 10
  marksync retention enforce daily --dry-run

Configuration:
  Config file: ~/.config/marksync/config.toml
  Environment: MARKSYNC_DATABASE, MARKSYNC_SNAPSHOT_DIR, MARKSYNC_DEFAULT_SCOPE
        """
    )

    parser.add_argument("--db", help="Backup log database file (default: marksync.db)")
    parser.add_argument("--snapshots", help="Snapshot directory (local.json, remote.json, baseline.json)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-o", "--output", choices=["table", "json"], help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command groups")

    # preview / sync
    preview = subparsers.add_parser("preview", help="Dry-run a sync")
    preview.add_argument("--scope", choices=SYNC_SCOPES, help="Sync scope")
    preview.set_defaults(func=cmd_preview)

    sync = subparsers.add_parser("sync", help="Run a sync cycle")
    sync.add_argument("--scope", choices=SYNC_SCOPES, help="Sync scope")
    sync.add_argument("--strategy", choices=AUTO_STRATEGIES + (STRATEGY_MANUAL,),
                      help="Conflict strategy")
    sync.set_defaults(func=cmd_sync)

    # backup group
    backup_parser = subparsers.add_parser("backup", help="Backup log operations")
    backup_sub = backup_parser.add_subparsers(dest="backup_command", required=True)

    backup_list = backup_sub.add_parser("list", help="List backups")
    backup_list.add_argument("--schedule", help="Only this schedule")
    backup_list.add_argument("--type", choices=BACKUP_TYPES, help="Only this type")

    backup_add = backup_sub.add_parser("add", help="Record a backup")
    backup_add.add_argument("--type", choices=BACKUP_TYPES, default=BACKUP_TYPE_MANUAL)
    backup_add.add_argument("--schedule", help="Schedule id (scheduled backups)")
    backup_add.add_argument("--status", choices=BACKUP_STATUSES, default=BACKUP_STATUS_SUCCESS)
    backup_add.add_argument("--ref", help="Content reference")
    backup_add.add_argument("--id", help="Backup id (default: backup_<epoch ms>)")
    backup_add.add_argument("--description", help="Free-form description")

    backup_delete = backup_sub.add_parser("delete", help="Delete a backup")
    backup_delete.add_argument("id", help="Backup id")

    backup_sub.add_parser("stats", help="Backup statistics")
    backup_parser.set_defaults(func=cmd_backup)

    # retention group
    retention_parser = subparsers.add_parser("retention", help="Retention policies")
    retention_sub = retention_parser.add_subparsers(dest="retention_command", required=True)

    retention_set = retention_sub.add_parser("set", help="Set a schedule's retention count")
    retention_set.add_argument("schedule", help="Schedule id")
    retention_set.add_argument("count", type=int, help="Backups to keep (-1 for unlimited)")

    retention_enforce = retention_sub.add_parser("enforce", help="Trim a schedule's backups")
    retention_enforce.add_argument("schedule", help="Schedule id")
    retention_enforce.add_argument("--count", type=int, help="Override the stored retention count")
    retention_enforce.add_argument("--dry-run", action="store_true", help="Only list what would be removed")

    retention_show = retention_sub.add_parser("show", help="Show a schedule's retention state")
    retention_show.add_argument("schedule", help="Schedule id")
    retention_parser.set_defaults(func=cmd_retention)

    # config
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("action", choices=["show", "init"], help="Config action")
    config_parser.add_argument("key", nargs="?", help="Config key")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_args = {}
    if args.output:
        config_args["output_format"] = args.output
    if args.config:
        config_args["config_file"] = Path(args.config)

    config = init_config(database=args.db, **config_args)
    logging.basicConfig(level=config.log_level.upper(), format="%(levelname)s: %(message)s")

    if not args.output:
        args.output = config.output_format

    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
