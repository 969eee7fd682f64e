"""Operator commands for the memory server.

Usage examples:
    # Check the server is reachable
    redis-memory health

    # Search long-term memory
    redis-memory search "dark mode"

    # Store a memory (category detected if omitted)
    redis-memory store "I prefer dark mode" --category preference

    # Forget by id, or by query (auto-deletes only a single confident match)
    redis-memory forget --id 3f2a...
    redis-memory forget --query "dark mode"

    # Show the rolling summary for the configured user
    redis-memory summary
"""

import argparse
import asyncio
import json
import logging
import sys

from redis_memory.config import settings
from redis_memory.memory.categories import MEMORY_CATEGORIES
from redis_memory.memory.client import MemoryServerClient, MemoryServerError
from redis_memory.memory.summary_view import SummaryViewManager
from redis_memory.tools import registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="redis-memory", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("health", help="Check server health")

    search = sub.add_parser("search", help="Search long-term memory")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=5)

    store = sub.add_parser("store", help="Store a memory")
    store.add_argument("text")
    store.add_argument("--category", choices=MEMORY_CATEGORIES, default=None)

    forget = sub.add_parser("forget", help="Forget a memory")
    forget.add_argument("--id", dest="memory_id", default=None)
    forget.add_argument("--query", default=None)

    sub.add_parser("summary", help="Show the rolling summary partition")
    return parser


async def _run(args: argparse.Namespace) -> int:
    client = MemoryServerClient.get()
    try:
        if args.command == "health":
            try:
                data = await client.health_check()
            except MemoryServerError as exc:
                print(f"ERROR: {exc}", file=sys.stderr)
                return 1
            print(json.dumps(data))
            return 0

        if args.command == "summary":
            manager = SummaryViewManager.get()
            if await manager.ensure() is None:
                print("ERROR: summary view unavailable", file=sys.stderr)
                return 1
            partition = await manager.fetch_partition()
            if partition is None:
                print("No summary available yet.")
                return 0
            print(f"computed: {partition.computed_at or 'unknown'}")
            print(f"memories: {partition.memory_count}\n")
            print(partition.summary)
            return 0

        if args.command == "search":
            name, arguments = "memory_recall", {"query": args.query, "limit": args.limit}
        elif args.command == "store":
            name, arguments = "memory_store", {"text": args.text, "category": args.category}
        else:
            name, arguments = "memory_forget", {"query": args.query, "memory_id": args.memory_id}

        result = await registry.execute(name, arguments)
        print(result.text)
        return 0 if result.success else 1
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
    args = build_parser().parse_args(argv)
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
