#!/usr/bin/env python3
"""
ExamDash CLI - inspect and drive the offline queue

Usage:
    examdash status              # Connectivity, pending and dead-lettered actions
    examdash pending             # List queued actions
    examdash sync                # Probe the backend and replay the queue
    examdash purge               # Remove expired cache entries
    examdash cache-get KEY       # Show a cached value
    examdash cache-delete KEY    # Drop a cached value
    examdash requeue             # Move dead-lettered actions back into the queue
    examdash clear-queue --yes   # Discard every queued action
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from examdash import __version__
from examdash.config import Settings, settings as default_settings
from examdash.offline.manager import OfflineManager


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="examdash",
        description="ExamDash admin - offline queue and cache tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  examdash status                 Show queue and connection state
  examdash sync                   Replay queued changes now
  examdash cache-get /categories  Show the cached category list

Environment:
  EXAMDASH_API_BASE_URL           Backend API (default: http://localhost:5000/api)
  EXAMDASH_DATA_DIR               Where the offline database lives
  EXAMDASH_AUTH_TOKEN             Bearer token used for replay
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("status", help="Show connectivity and queue status")
    subparsers.add_parser("pending", help="List queued offline actions")

    sync_parser = subparsers.add_parser("sync", help="Replay queued actions")
    sync_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip the health probe and replay anyway"
    )

    subparsers.add_parser("purge", help="Remove expired cache entries")

    cache_parser = subparsers.add_parser("cache-get", help="Show a cached value")
    cache_parser.add_argument("key", help="Cache key (usually the request URL)")

    delete_parser = subparsers.add_parser("cache-delete", help="Drop a cached value")
    delete_parser.add_argument("key", help="Cache key (usually the request URL)")

    subparsers.add_parser("requeue", help="Move dead-lettered actions back into the queue")

    clear_parser = subparsers.add_parser("clear-queue", help="Discard every queued action")
    clear_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm that unsynced changes should be thrown away"
    )

    parser.add_argument(
        "--api-url",
        type=str,
        help="Backend API URL (overrides EXAMDASH_API_BASE_URL)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def _format_ts(ms: Optional[int]) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


async def show_status(manager: OfflineManager, console: Console) -> int:
    online = await manager.monitor.probe()
    pending = await manager.check_pending_actions()
    dead = await manager.queue.get_dead_letters()

    console.print(Panel(
        f"Backend: [cyan]{manager.settings.API_BASE_URL}[/cyan]\n"
        f"Connection: {'[green]online[/green]' if online else '[red]offline[/red]'}\n"
        f"Pending actions: [yellow]{pending}[/yellow]\n"
        f"Dead letters: [red]{len(dead)}[/red]",
        title="ExamDash offline status",
        border_style="cyan"
    ))
    return 0


async def show_pending(manager: OfflineManager, console: Console) -> int:
    actions = await manager.get_pending_actions()
    if not actions:
        console.print("[green]No pending actions[/green]")
        return 0

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Method")
    table.add_column("URL")
    table.add_column("Queued at")
    table.add_column("Attempts", justify="right")
    table.add_column("Last error", style="dim")

    for action in actions:
        table.add_row(
            str(action.id),
            action.method,
            action.url,
            _format_ts(action.created_at),
            str(action.attempts),
            action.last_error or "",
        )

    console.print(table)
    return 0


async def run_sync(manager: OfflineManager, console: Console, force: bool = False) -> int:
    if force:
        manager.set_online(True)
    elif not await manager.monitor.probe():
        console.print("[red]✗ Backend unreachable, nothing replayed[/red]")
        return 1

    # probe() may already have triggered a reconnect sync
    await manager.wait_idle()
    result = await manager.sync_offline_actions()

    if result is None or result.skipped:
        reason = result.skipped if result else "another sync is running"
        console.print(f"[yellow]Sync skipped ({reason})[/yellow]")
        return 1

    console.print(
        f"[green]✓ Replayed {len(result.succeeded)}[/green], "
        f"[yellow]{len(result.failed)} still queued[/yellow]"
    )
    if result.stopped == "auth_required":
        console.print("[red]Login required: the backend rejected the stored token[/red]")
    return 0 if not result.failed else 1


async def run_purge(manager: OfflineManager, console: Console) -> int:
    removed = await manager.purge_expired()
    console.print(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'}")
    return 0


async def show_cached(manager: OfflineManager, console: Console, key: str) -> int:
    data = await manager.get_offline_data(key)
    if data is None:
        console.print(f"[yellow]Nothing cached for {key}[/yellow]")
        return 1
    console.print_json(json.dumps(data, default=str))
    return 0


async def run_cache_delete(manager: OfflineManager, console: Console, key: str) -> int:
    await manager.delete_offline_data(key)
    console.print(f"Dropped cached value for {key}")
    return 0


async def run_clear_queue(manager: OfflineManager, console: Console, confirmed: bool) -> int:
    pending = await manager.check_pending_actions()
    dead = await manager.queue.get_dead_letters()
    if not confirmed:
        console.print(
            f"[yellow]{pending + len(dead)} action(s) would be discarded; "
            f"rerun with --yes to confirm[/yellow]"
        )
        return 1

    await manager.clear_pending_actions()
    console.print(f"Discarded {pending + len(dead)} action(s)")
    return 0


async def run_requeue(manager: OfflineManager, console: Console) -> int:
    count = await manager.requeue_dead_letters()
    console.print(f"Requeued {count} action(s)")
    return 0


async def dispatch(args: argparse.Namespace, settings: Settings, console: Console) -> int:
    async with OfflineManager(settings) as manager:
        if args.command == "pending":
            return await show_pending(manager, console)
        if args.command == "sync":
            return await run_sync(manager, console, force=args.force)
        if args.command == "purge":
            return await run_purge(manager, console)
        if args.command == "cache-get":
            return await show_cached(manager, console, args.key)
        if args.command == "cache-delete":
            return await run_cache_delete(manager, console, args.key)
        if args.command == "requeue":
            return await run_requeue(manager, console)
        if args.command == "clear-queue":
            return await run_clear_queue(manager, console, args.yes)
        return await show_status(manager, console)


def main(argv=None):
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)
    console = Console()

    settings = default_settings
    if args.api_url:
        settings = settings.model_copy(update={"API_BASE_URL": args.api_url.rstrip("/")})

    try:
        exit_code = asyncio.run(dispatch(args, settings, console))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        exit_code = 130
    except Exception as e:
        console.print(f"\n[red]❌ Error: {e}[/red]")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
