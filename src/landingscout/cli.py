"""Command-line interface for LandingScout."""

import asyncio
import json
import sys
from typing import Optional

from landingscout.config import settings
from landingscout.database import get_db_client
from landingscout.exceptions import LandingScoutError
from landingscout.exports import export_session_csv
from landingscout.infrastructure.browser_manager import BrowserManager
from landingscout.logging_config import setup_logging
from landingscout.processors.registry import build_default_registry
from landingscout.scheduler import ScoutScheduler
from landingscout.scout_service import ScoutService
from landingscout.session_engine import CrawlSessionEngine


def _build_engine(db) -> CrawlSessionEngine:
    return CrawlSessionEngine(
        db,
        BrowserManager(settings.browser_config()),
        build_default_registry(settings),
        ScoutService(db),
        settings,
    )


def _load_page_types(args) -> list:
    if args.page_types_file:
        with open(args.page_types_file) as f:
            return json.load(f)
    if args.page_types:
        return json.loads(args.page_types)
    return []


def print_session(session) -> None:
    end = session.end_time.isoformat() if session.end_time else "-"
    print(
        f"{session.id}  {session.status.value:<9}  pages={session.total_pages_scanned:<4} "
        f"started={session.start_time.isoformat()}  ended={end}"
    )
    if session.error_message:
        print(f"  ⚠️  {session.error_message}")


def scouts_add_command(args, db):
    """Create a scout."""
    scout = ScoutService(db).create(
        name=args.name,
        start_url=args.start_url,
        schedule=args.schedule,
        page_types=_load_page_types(args),
        active=not args.inactive,
        max_pages_to_visit=args.max_pages,
        timeout=args.timeout,
    )
    print(f"✓ Created scout {scout.id} ({scout.name}), next run at {scout.next_run_at.isoformat()}")


def scouts_list_command(args, db):
    """List scouts."""
    service = ScoutService(db)
    scouts = service.list_active() if args.active else service.list_all()
    if not scouts:
        print("No scouts configured")
        return

    for scout in scouts:
        state = "active" if scout.active else "inactive"
        next_run = scout.next_run_at.isoformat() if scout.next_run_at else "-"
        print(f"{scout.id}  {scout.name}  [{state}]  {scout.schedule!r}  next={next_run}")
        print(f"  {scout.start_url}  types={', '.join(r.type for r in scout.page_types) or '-'}")


def scouts_remove_command(args, db):
    """Delete a scout and its history."""
    ScoutService(db).remove(args.scout_id)
    print(f"✓ Removed scout {args.scout_id}")


async def _run_scout(db, scout_id: str):
    engine = _build_engine(db)
    try:
        session = await engine.start_session(scout_id)
        print(f"Started session {session.id}")
        await engine.wait_for_sessions()
        return engine.get_session(session.id)
    finally:
        await engine.shutdown()


def run_command(args, db):
    """Run one session for a scout in the foreground."""
    session = asyncio.run(_run_scout(db, args.scout_id))
    print_session(session)


def cancel_command(args, db):
    """Cancel a running session."""
    engine = CrawlSessionEngine(db, BrowserManager(), build_default_registry(settings))
    print_session(engine.cancel_session(args.session_id))


def sessions_command(args, db):
    """List sessions, newest first."""
    sessions = db.list_sessions(args.scout)
    if not sessions:
        print("No sessions found")
        return
    for session in sessions:
        print_session(session)


def show_command(args, db):
    """Show a session with its page results."""
    engine = CrawlSessionEngine(db, BrowserManager(), build_default_registry(settings))
    session = engine.get_session(args.session_id)
    results = engine.get_page_results(args.session_id)

    if args.output == "json":
        print(json.dumps(
            {
                "session": session.__dict__,
                "page_results": [
                    {k: v for k, v in r.__dict__.items() if k != "html_snapshot"}
                    for r in results
                ],
            },
            indent=2,
            default=str,
        ))
        return

    print_session(session)
    for result in results:
        line = (
            f"  [{result.status.value}] {result.url} -> {result.page_type} "
            f"count={result.product_count} ({result.processing_time_ms}ms)"
        )
        if result.error_message:
            line += f"  {result.error_message}"
        print(line)


def export_command(args, db):
    """Export a session's page results to CSV."""
    csv_text = export_session_csv(db, args.session_id, args.base_url)
    if args.output_file:
        with open(args.output_file, "w", newline="") as f:
            f.write(csv_text)
        print(f"Report written to {args.output_file}")
    else:
        print(csv_text, end="")


async def _serve_scheduler(db) -> None:
    engine = _build_engine(db)
    scheduler = ScoutScheduler(engine)
    if not scheduler.start():
        return
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown()
        await engine.shutdown()


def scheduler_command(args, db):
    """Run the scout scheduler until interrupted."""
    try:
        asyncio.run(_serve_scheduler(db))
    except KeyboardInterrupt:
        print("\nScheduler stopped")


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="LandingScout - Crawl e-commerce landing pages and track what they show"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.log_level.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.log_file,
        help="Write logs to file in addition to console",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="Store location (default: DATABASE_URL)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Scout management
    scouts_parser = subparsers.add_parser("scouts", help="Manage scouts.")
    scouts_sub = scouts_parser.add_subparsers(dest="scouts_command")

    add_parser = scouts_sub.add_parser("add", help="Create a scout.")
    add_parser.add_argument("name", help="Scout name")
    add_parser.add_argument("start_url", help="URL the crawl starts from")
    add_parser.add_argument(
        "--schedule",
        required=True,
        help='Cron expression, e.g. "0 */6 * * *"',
    )
    add_parser.add_argument(
        "--page-types",
        help='JSON list of rules, e.g. \'[{"type": "collection", "identifier": ".grid"}]\'',
    )
    add_parser.add_argument("--page-types-file", help="File holding the JSON rule list")
    add_parser.add_argument("--max-pages", type=int, help="Maximum pages per session")
    add_parser.add_argument("--timeout", type=int, help="Navigation timeout in milliseconds")
    add_parser.add_argument("--inactive", action="store_true", help="Create the scout paused")
    add_parser.set_defaults(func=scouts_add_command)

    list_parser = scouts_sub.add_parser("list", help="List scouts.")
    list_parser.add_argument("--active", action="store_true", help="Only active scouts")
    list_parser.set_defaults(func=scouts_list_command)

    remove_parser = scouts_sub.add_parser("remove", help="Delete a scout.")
    remove_parser.add_argument("scout_id")
    remove_parser.set_defaults(func=scouts_remove_command)

    # Sessions
    run_parser = subparsers.add_parser("run", help="Run a scout now and wait for it.")
    run_parser.add_argument("scout_id")
    run_parser.set_defaults(func=run_command)

    cancel_parser = subparsers.add_parser("cancel", help="Cancel a running session.")
    cancel_parser.add_argument("session_id")
    cancel_parser.set_defaults(func=cancel_command)

    sessions_parser = subparsers.add_parser("sessions", help="List sessions.")
    sessions_parser.add_argument("--scout", help="Only sessions of this scout")
    sessions_parser.set_defaults(func=sessions_command)

    show_parser = subparsers.add_parser("show", help="Show a session and its page results.")
    show_parser.add_argument("session_id")
    show_parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    show_parser.set_defaults(func=show_command)

    export_parser = subparsers.add_parser("export", help="Export a session to CSV.")
    export_parser.add_argument("session_id")
    export_parser.add_argument("--output-file", "-f", help="Write CSV to file")
    export_parser.add_argument("--base-url", help="Prefix for screenshot links")
    export_parser.set_defaults(func=export_command)

    scheduler_parser = subparsers.add_parser("scheduler", help="Run the scheduler loop.")
    scheduler_parser.set_defaults(func=scheduler_command)

    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return

    db = get_db_client(args.database_url)
    try:
        args.func(args, db)
    except LandingScoutError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
