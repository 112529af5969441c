#!/usr/bin/env python3
"""Clipboard history command-line tool.

Usage: clipboard-history <db_path> <command> [args...]
"""

import asyncio
import json
import logging
import sys
from typing import Any, Callable, List, Optional

from clipboard_history.core.config import Settings
from clipboard_history.core.kv import StoreOpenError
from clipboard_history.core.storage import EntryStore

logger = logging.getLogger(__name__)

USAGE = """Usage: {prog} <db_path> <command> [args...]
Commands:
  add <content> <type> <preview> <size>
  recent [limit]
  search <query> [limit]
  count
  clear
  get <id>
  stats"""


class UsageError(Exception):
    """Invalid command or insufficient arguments."""


class CommandFailed(Exception):
    """The command ran but could not complete."""


def configure_logging(settings: Settings):
    """Send log output to stderr; stdout carries results only."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_limit(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise UsageError(f"Invalid limit: {value}")


def dump(result: Any) -> str:
    return json.dumps(result, ensure_ascii=False)


class ClipboardHistoryCLI:
    """Runs one command against an entry store."""

    def __init__(self, store: EntryStore):
        self.store = store

    async def dispatch(self, command: str, args: List[str]) -> str:
        """Dispatch a command to its handler."""
        handlers = {
            "add": self._handle_add,
            "recent": self._handle_recent,
            "search": self._handle_search,
            "count": self._handle_count,
            "clear": self._handle_clear,
            "get": self._handle_get,
            "stats": self._handle_stats,
        }

        handler = handlers.get(command)
        if not handler:
            raise UsageError(f"Unknown command: {command}")

        return await handler(args)

    async def _handle_add(self, args: List[str]) -> str:
        if len(args) < 4:
            raise UsageError("add needs <content> <type> <preview> <size>")

        content, type_, preview, size = args[:4]
        result = await self.store.add(content, type_, preview, size)
        if result is None:
            raise CommandFailed("Write failed")

        return dump(result.model_dump())

    async def _handle_recent(self, args: List[str]) -> str:
        limit = parse_limit(args[0]) if args else self.store.settings.recent_limit
        entries = await self.store.recent(limit)
        return dump([entry.model_dump() for entry in entries])

    async def _handle_search(self, args: List[str]) -> str:
        if not args:
            raise UsageError("search needs <query>")

        query = args[0]
        limit = parse_limit(args[1]) if len(args) > 1 else self.store.settings.search_limit
        entries = await self.store.search(query, limit)
        return dump([entry.model_dump() for entry in entries])

    async def _handle_count(self, args: List[str]) -> str:
        return dump({"count": await self.store.count()})

    async def _handle_clear(self, args: List[str]) -> str:
        if not await self.store.clear():
            raise CommandFailed("Clear failed")
        return dump({"status": "cleared"})

    async def _handle_get(self, args: List[str]) -> str:
        if not args:
            raise UsageError("get needs <id>")

        entry = await self.store.get(args[0])
        if entry is None:
            raise CommandFailed(f"Entry not found: {args[0]}")
        return dump(entry.model_dump())

    async def _handle_stats(self, args: List[str]) -> str:
        return dump(await self.store.get_stats())


async def async_main(argv: List[str], settings: Optional[Settings] = None) -> int:
    """Open the store, run one command, close the store."""
    prog = argv[0] if argv else "clipboard-history"
    if len(argv) < 3:
        print(USAGE.format(prog=prog), file=sys.stderr)
        return 1

    settings = settings or Settings.from_env()
    db_path, command, args = argv[1], argv[2], argv[3:]

    store = EntryStore(db_path, settings)
    try:
        await store.open()
    except StoreOpenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        output = await ClipboardHistoryCLI(store).dispatch(command, args)
    except UsageError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print(USAGE.format(prog=prog), file=sys.stderr)
        return 1
    except CommandFailed as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Command %s failed", command)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    finally:
        await store.close()

    print(output)
    return 0


def run(entry: Callable[..., Any], argv: Optional[List[str]] = None) -> int:
    """Configure logging and drive an async command entry point."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"ERROR: Invalid CLIPBOARD_HISTORY_* setting: {e}", file=sys.stderr)
        return 1
    configure_logging(settings)
    return asyncio.run(entry(argv if argv is not None else sys.argv, settings))


def main():
    """Synchronous entry point for console script."""
    sys.exit(run(async_main))


if __name__ == "__main__":
    main()
