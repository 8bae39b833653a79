#!/usr/bin/env python3
"""
Listing Tracker - Main Entry Point
==================================

Background price and availability refresh for tracked marketplace listings.

Usage:
    python main.py                  # Run the API server with the refresh scheduler
    python main.py --mode once      # Run one refresh batch and exit
    python main.py --mode status    # Print the persisted refresh status
    python main.py --help           # Show help
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Optional

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

from tracker.core.config import Config
from tracker.core.engine import build_engine
from tracker.utils.logger import get_logger, setup_logging

log = get_logger(__name__)


async def run_once(data_dir: Optional[str] = None) -> int:
    engine = build_engine(data_dir)
    try:
        engine.status_store.recover_stale()
        result = await engine.orchestrator.run_batch()
    finally:
        await engine.fetcher.close()

    if result is None:
        log.warning("Another refresh run is active, nothing done")
        return 1
    log.info(
        f"Run complete: total={result.total} succeeded={result.succeeded} "
        f"failed={result.failed} rate_limited={result.rate_limited}"
    )
    return 0


def show_status(data_dir: Optional[str] = None) -> int:
    engine = build_engine(data_dir)
    print(json.dumps(engine.status_store.as_dict(), indent=2))
    return 0


def run_api(host: str, port: int) -> int:
    import uvicorn

    from tracker.api.app import create_app

    uvicorn.run(create_app(), host=host, port=port, log_level="info")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Listing Tracker refresh engine")
    parser.add_argument("--mode", choices=["api", "once", "status"], default="api")
    parser.add_argument("--data-dir", default=None, help="Directory for listings and refresh state")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument("--config", default=None, help="Path to settings.yaml")
    args = parser.parse_args()

    load_dotenv()
    if args.config:
        os.environ["TRACKER_CONFIG"] = args.config
    Config.reset()
    setup_logging()

    if args.mode == "once":
        return asyncio.run(run_once(args.data_dir))
    if args.mode == "status":
        return show_status(args.data_dir)
    return run_api(args.host, args.port)


if __name__ == "__main__":
    sys.exit(main())
