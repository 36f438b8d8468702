#!/usr/bin/env python3
"""
ToolStack Cron Sync Runner
==========================

Lightweight cron entry point: runs one bulk resync in-process, then exits.
An unfinished walk (time budget reached) resumes on the next run.

Local cron:
    0 12 * * * cd /path/to/toolstack && python scripts/cron_sync.py --target all >> data/cron.log 2>&1
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

from toolstack.data.config import get_settings
from toolstack.errors import ToolStackError
from toolstack.factory import ServiceFactory
from toolstack.orchestrator.logging_config import setup_logging
from toolstack.sync.bulk import SyncTarget

logger = logging.getLogger("toolstack.cron")


async def run_once(target: SyncTarget, resume: bool):
    factory = ServiceFactory(get_settings())
    try:
        return await factory.bulk_orchestrator().run(target, resume=resume)
    finally:
        await factory.aclose()


def main():
    parser = argparse.ArgumentParser(description="Run one ToolStack bulk resync")
    parser.add_argument("--target", choices=[t.value for t in SyncTarget], default="all")
    parser.add_argument("--no-resume", action="store_true")
    args = parser.parse_args()

    log_config = get_settings().logging
    setup_logging(level=log_config.level, json_output=log_config.json_logs, log_file=log_config.log_file)

    logger.info("=" * 60)
    logger.info(f"TOOLSTACK CRON SYNC ({args.target}) {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    try:
        summary = asyncio.run(run_once(SyncTarget(args.target), not args.no_resume))
    except ToolStackError as e:
        logger.error(f"Sync could not start: {e}")
        return 1

    logger.info(f"Result: {json.dumps(summary.to_details(), indent=2, default=str)}")
    return 0 if summary.success else 1


if __name__ == "__main__":
    sys.exit(main())
