"""
ToolStack Orchestrator CLI
==========================

Command-line interface for index provisioning and synchronization.

Commands:
    provision   - Create the text index and the vector table
    resync      - Run one bulk resync
    status      - Show sync state and backend health
    search      - Query the text index
    ask         - Ask the chatbot a question
    schedule    - Run the daily sync scheduler

Usage:
    python -m toolstack.orchestrator.cli provision --recreate
    python -m toolstack.orchestrator.cli resync --target text
    python -m toolstack.orchestrator.cli search "orm"
    python -m toolstack.orchestrator.cli ask "Which ORM should I use with TypeScript?"
    python -m toolstack.orchestrator.cli schedule
"""

import argparse
import asyncio
import json
import logging
import sys

from ..data.config import get_settings
from ..errors import ToolStackError
from ..factory import ServiceFactory
from ..sync.bulk import SyncTarget
from ..sync.state import SyncState
from .logging_config import setup_logging
from .scheduler import SyncScheduler


async def _provision(factory: ServiceFactory, recreate: bool):
    try:
        created = await factory.text_index.ensure_collection(recreate=recreate)
        await factory.vector_index.ensure_schema()
        return created
    finally:
        await factory.aclose()


def cmd_provision(args):
    """Create the text index and vector table."""
    factory = ServiceFactory(get_settings())
    try:
        created = asyncio.run(_provision(factory, args.recreate))
    except ToolStackError as e:
        print(f"ERROR: Provisioning failed: {e}")
        return 1

    print(f"Text index {factory.text_index.index_name}: {'created' if created else 'already exists'}")
    print(f"Vector table ready (namespace {factory.vector_index.namespace})")
    return 0


async def _resync(factory: ServiceFactory, target: SyncTarget, resume: bool):
    try:
        return await factory.bulk_orchestrator().run(target, resume=resume)
    finally:
        await factory.aclose()


def cmd_resync(args):
    """Run one bulk resync invocation."""
    factory = ServiceFactory(get_settings())
    print("=" * 60)
    print(f"TOOLSTACK BULK RESYNC ({args.target})")
    print("=" * 60)

    try:
        summary = asyncio.run(_resync(factory, SyncTarget.parse(args.target), not args.no_resume))
    except ToolStackError as e:
        print(f"\nERROR: Resync could not start: {e}")
        logging.exception("Resync failed")
        return 1

    print()
    print(summary.to_message())
    if args.json:
        print(json.dumps(summary.to_details(), indent=2, default=str))
    return 0 if summary.success else 1


def cmd_status(args):
    """Show sync state and backend health."""
    settings = get_settings()
    factory = ServiceFactory(settings)

    async def health():
        try:
            store, vector, text = await asyncio.gather(
                factory.store.check_health(),
                factory.vector_index.check_health(),
                factory.text_index.check_health(),
            )
        finally:
            await factory.aclose()
        return {"store": store, "vector_index": vector, "text_index": text}

    status = {
        "environment": settings.environment.value,
        "sync": {
            target.value: SyncState(target.value, settings.sync.state_dir).get_summary()
            for target in SyncTarget
        },
        "health": asyncio.run(health()),
    }

    if args.json:
        print(json.dumps(status, indent=2, default=str))
        return 0

    print("=" * 60)
    print(f"TOOLSTACK STATUS ({status['environment']})")
    print("=" * 60)
    for name, health in status["health"].items():
        print(f"  {name}: {health.get('status')}")
    print()
    for target, state in status["sync"].items():
        last = state.get("last_run") or {}
        current = state.get("current_run")
        print(f"  {target}: last={last.get('status', 'never')} at {last.get('completed_at', 'N/A')}")
        if current:
            print(f"      unfinished run {current.get('run_id')} at cursor {current.get('cursor')}")
    return 0


async def _search(factory: ServiceFactory, query: str, limit: int):
    try:
        return await factory.text_index.search(query, per_page=limit)
    finally:
        await factory.aclose()


def cmd_search(args):
    """Query the text index."""
    factory = ServiceFactory(get_settings())
    try:
        result = asyncio.run(_search(factory, args.query, args.limit))
    except ToolStackError as e:
        print(f"ERROR: Search failed: {e}")
        return 1

    if args.json:
        print(json.dumps({"found": result.found, "hits": result.hits}, indent=2, default=str))
        return 0

    print(f"{result.found} tools found")
    for hit in result.hits:
        print(f"  {hit.get('name', '?'):<30} {hit.get('category', ''):<20} {hit.get('ecosystem', '')}")
    return 0


async def _ask(factory: ServiceFactory, question: str):
    try:
        return await factory.chatbot().answer([{"role": "user", "content": question}], question)
    finally:
        await factory.aclose()


def cmd_ask(args):
    """Ask the chatbot a single question."""
    factory = ServiceFactory(get_settings())
    try:
        response = asyncio.run(_ask(factory, args.question))
    except ToolStackError as e:
        print(f"ERROR: {e.message}")
        return 1

    print(response["message"])
    return 0


def cmd_schedule(args):
    """Run the scheduler until interrupted."""
    settings = get_settings()
    scheduler = SyncScheduler(settings.scheduler, sync_token=settings.auth.sync_token)
    if args.once:
        return 0 if scheduler.run_sync() else 1
    scheduler.start(blocking=True)
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="toolstack",
        description="ToolStack index sync CLI",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    provision_parser = subparsers.add_parser("provision", help="Create text index and vector table")
    provision_parser.add_argument(
        "--recreate",
        action="store_true",
        help="Drop and recreate the text index",
    )

    resync_parser = subparsers.add_parser("resync", help="Run one bulk resync")
    resync_parser.add_argument(
        "--target",
        choices=[t.value for t in SyncTarget],
        default=SyncTarget.ALL.value,
        help="Index to write (default: all)",
    )
    resync_parser.add_argument(
        "--no-resume",
        action="store_true",
        help="Walk the whole collection even if a previous run was cut short",
    )
    resync_parser.add_argument("--json", action="store_true", help="Also print details as JSON")

    status_parser = subparsers.add_parser("status", help="Show sync state and health")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")

    search_parser = subparsers.add_parser("search", help="Query the text index")
    search_parser.add_argument("query", help="Search text, * for everything")
    search_parser.add_argument("--limit", type=int, default=10, help="Maximum hits (default: 10)")
    search_parser.add_argument("--json", action="store_true", help="Output as JSON")

    ask_parser = subparsers.add_parser("ask", help="Ask the chatbot")
    ask_parser.add_argument("question", help="Question about developer tools")

    schedule_parser = subparsers.add_parser("schedule", help="Run the daily sync scheduler")
    schedule_parser.add_argument(
        "--once",
        action="store_true",
        help="Call the sync endpoints once and exit",
    )

    args = parser.parse_args()

    log_config = get_settings().logging
    setup_logging(
        level="DEBUG" if args.verbose else log_config.level,
        json_output=log_config.json_logs,
        log_file=log_config.log_file,
    )

    if args.command is None:
        parser.print_help()
        return 1

    commands = {
        "provision": cmd_provision,
        "resync": cmd_resync,
        "status": cmd_status,
        "search": cmd_search,
        "ask": cmd_ask,
        "schedule": cmd_schedule,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
