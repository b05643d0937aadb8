#!/usr/bin/env python3
"""
Cache Flush Utility
===================

Deletes cached keys from the KV store.

Usage:
    telehealth-cache-flush --pattern "doctors:list:*"
    telehealth-cache-flush --all --yes

Keys are found with SCAN (never KEYS) so a large keyspace does not block the
server. ``--all`` flushes the whole database and requires ``--yes``.
"""

import argparse
import asyncio
import sys
from datetime import datetime

from telehealth_cache.core.logging.logger import setup_logging
from telehealth_cache.infrastructure.cache.redis_client import RedisClient


class Colors:
    RESET = "\033[0m"
    OK = "\033[1;32m"
    WARN = "\033[1;33m"
    FAIL = "\033[1;31m"
    INFO = "\033[1;34m"


def print_status(status: str, message: str, detail: str = "") -> None:
    timestamp = datetime.now().strftime("%b %d %H:%M:%S")
    color = getattr(Colors, status, Colors.INFO)
    suffix = f" ({detail})" if detail else ""
    print(f"{timestamp} [{color}{status:^4}{Colors.RESET}] {message}{suffix}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="telehealth-cache-flush", description="Delete cached keys from the KV store."
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--pattern", help="Glob pattern of keys to delete, e.g. 'user:*:profile'")
    target.add_argument("--all", action="store_true", help="Flush the entire database")
    parser.add_argument("--yes", action="store_true", help="Confirm --all")
    return parser


async def flush(client: RedisClient, pattern: str | None = None, flush_all: bool = False) -> int:
    """
    Delete keys matching ``pattern``, or everything when ``flush_all``.

    Returns:
        Exit code (0 on success)
    """
    if not client.is_configured():
        print_status("FAIL", "KV store not configured", "set REDIS_URL and REDIS_TOKEN")
        return 1

    if not await client.test_connection():
        print_status("FAIL", "KV store unreachable")
        return 1

    try:
        if flush_all:
            if not await client.flushdb():
                print_status("FAIL", "FLUSHDB failed")
                return 1
            print_status("OK", "Database flushed")
            return 0

        keys = await client.scan_keys(pattern)
        if not keys:
            print_status("INFO", "No keys matched", pattern)
            return 0
        deleted = await client.delete(*keys)
        print_status("OK", f"Deleted {deleted} key(s)", pattern)
        return 0
    finally:
        await client.disconnect()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.all and not args.yes:
        print_status("WARN", "Refusing to flush the whole database without --yes")
        return 2

    setup_logging(log_format="console")
    try:
        return asyncio.run(flush(RedisClient(), pattern=args.pattern, flush_all=args.all))
    except KeyboardInterrupt:
        print_status("WARN", "Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
