#!/usr/bin/env python3
"""
Celery Producer Example

Submits a task to Celery workers, checks it once, waits for it, then waits
for a task that does not exist to show the deadline behaviour.

Usage:
    python scripts/example_submit.py
    python scripts/example_submit.py --sentinel host1:26379,host2:26379 --master default-master

Requires a Redis server (or Sentinel group) and a Celery worker consuming
the queue with a task named worker.fake_load_task.
"""

import argparse
import asyncio
import logging
import sys

# Add project root to path
sys.path.insert(0, ".")

from celery_producer import ConfigurationError, create_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    options = {
        "url": args.url,
        "queue": args.queue,
        "timeout": args.timeout,
        "getinterval": args.interval,
    }
    if args.sentinel:
        options["sentinelAddrs"] = args.sentinel.split(",")
        options["mastername"] = args.master

    try:
        client = create_client(options)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2

    async with client:
        task_id = await client.delay(args.task, *args.task_args)
        logger.info(f"Submitted new celery task = {args.task} {task_id}")

        completed = await client.task_completed(task_id)
        logger.info(f"Task completed = {completed}")

        completed = await client.wait_for_task_completed(task_id)
        logger.info(f"Task completed = {completed}")

        # Always times out: nothing ever writes this result
        completed = await client.wait_for_task_completed("non-existing-task")
        logger.info(f"Task completed = {completed}")

        logger.info(f"Wait stats: {client.stats}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Submit a Celery task over Redis")
    parser.add_argument("--url", default="redis://127.0.0.1:6379/0")
    parser.add_argument("--queue", default="realtime")
    parser.add_argument("--timeout", default="10s")
    parser.add_argument("--interval", default="100ms")
    parser.add_argument("--sentinel", default="", help="Comma separated sentinel host:port list")
    parser.add_argument("--master", default="default-master")
    parser.add_argument("--task", default="worker.fake_load_task")
    parser.add_argument("task_args", nargs="*", type=int, default=[4000])
    return asyncio.run(run(parser.parse_args()))


if __name__ == "__main__":
    sys.exit(main())
