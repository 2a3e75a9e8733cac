"""Command line access to a key/value store.

    kvstore --type sqlite --settings '{"filename": "var/kv.sqlite"}' set greeting '"hello"'
    kvstore get greeting
    kvstore find 'greet*'

Backend options not given on the command line come from the YAML config
(see `kvstore_lib.config`). Results are printed as JSON.
"""
from __future__ import annotations
import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Iterable, Optional

from kvstore_lib.config import config_path, load_config
from kvstore_lib.database import Database
from kvstore_lib.errors import KVStoreError
from kvstore_lib.logging_config import configure_logging
from kvstore_lib.storage.registry import supported_backends

logger = logging.getLogger(__name__)


def get_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="kvstore", description="Read and write a key/value store")
    p.add_argument("--config", help="Path to the YAML config file")
    p.add_argument("--type", help="Backend type (overrides the config file)")
    p.add_argument("--settings", help="Backend settings as JSON (overrides the config file)")
    p.add_argument("--log-level", help="Logging level, e.g. DEBUG")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("get", help="Print the value of KEY")
    g.add_argument("key")

    s = sub.add_parser("set", help="Set KEY to VALUE (JSON, or a plain string)")
    s.add_argument("key")
    s.add_argument("value")

    r = sub.add_parser("remove", help="Remove KEY")
    r.add_argument("key")

    f = sub.add_parser("find", help="List keys matching a * wildcard PATTERN")
    f.add_argument("pattern")
    f.add_argument("--not", dest="not_pattern", help="Exclude keys matching this pattern")

    gs = sub.add_parser("get-sub", help="Print the sub-value of KEY at path SUB...")
    gs.add_argument("key")
    gs.add_argument("sub", nargs="+")

    ss = sub.add_parser("set-sub", help="Set the sub-value of KEY at path SUB...")
    ss.add_argument("key")
    ss.add_argument("sub", nargs="+")
    ss.add_argument("--value", required=True)

    sub.add_parser("backends", help="List the supported backend types")
    return p


def parse_value(text: str) -> Any:
    """Parse `text` as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def build_database(args: argparse.Namespace) -> Database:
    cfg = load_config(args.config)
    db_type = args.type or cfg.type
    settings = cfg.settings
    if args.settings is not None:
        settings = parse_value(args.settings)
    return Database(db_type, settings, cfg.wrapper, logger)


async def run_command(db: Database, args: argparse.Namespace) -> Any:
    async with db:
        if args.command == "get":
            return await db.get(args.key)
        if args.command == "set":
            await db.set(args.key, parse_value(args.value))
            return None
        if args.command == "remove":
            await db.remove(args.key)
            return None
        if args.command == "find":
            return sorted(await db.find_keys(args.pattern, args.not_pattern))
        if args.command == "get-sub":
            return await db.get_sub(args.key, args.sub)
        if args.command == "set-sub":
            await db.set_sub(args.key, args.sub, parse_value(args.value))
            return None
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = get_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    configure_logging(args.log_level, config_path(args.config))

    if args.command == "backends":
        print(json.dumps(supported_backends()))
        return 0

    try:
        db = build_database(args)
        result = asyncio.run(run_command(db, args))
    except (KVStoreError, ValueError, TypeError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 1
    if result is not None:
        print(json.dumps(result, indent=2, sort_keys=True, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
