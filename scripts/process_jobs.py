"""Run one scheduler pass (tick, then sweep) for an external cron."""

from __future__ import annotations

import argparse
import json
import logging

from config.settings import DATABASE_URL, DEFAULT_BATCH_SIZE, LOG_LEVEL
from src.pipeline.scheduler import create_scheduler
from src.services.job_store import JobStore


def main() -> None:
    parser = argparse.ArgumentParser(description="Advance pending jobs and retry stalled deliveries.")
    parser.add_argument(
        "--batch-size",
        dest="batch_size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help="Jobs to process per pass (default: %(default)s)",
    )
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=DATABASE_URL,
        help="SQLAlchemy database URL (default: %(default)s)",
    )
    parser.add_argument(
        "--skip-sweep",
        action="store_true",
        help="Only advance pending/scraping jobs",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    store = JobStore(args.database_url)
    store.create_schema()
    scheduler = create_scheduler(store)

    results = scheduler.tick(args.batch_size)
    if not args.skip_sweep:
        results += scheduler.sweep(args.batch_size)

    print(json.dumps({"message": f"Processed {len(results)} jobs", "results": results}, indent=2))


if __name__ == "__main__":
    main()
