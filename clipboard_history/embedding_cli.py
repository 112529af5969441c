#!/usr/bin/env python3
"""Embedding index command-line tool.

Usage: clipboard-embeddings <index_path> <command> [args...]
"""

import logging
import sys
from typing import List, Optional

from clipboard_history.cli import CommandFailed, UsageError, dump, parse_limit, run
from clipboard_history.core.config import Settings
from clipboard_history.core.embedding import EmbeddingIndex
from clipboard_history.core.kv import StoreOpenError
from clipboard_history.models.schemas import SimilarHit

logger = logging.getLogger(__name__)

USAGE = """Usage: {prog} <index_path> <command> [args...]
Commands:
  add <entry_id> <content>
  search <query> <limit>
  clear"""


class EmbeddingCLI:
    """Runs one command against an embedding index."""

    def __init__(self, index: EmbeddingIndex):
        self.index = index

    async def dispatch(self, command: str, args: List[str]) -> str:
        handlers = {
            "add": self._handle_add,
            "search": self._handle_search,
            "clear": self._handle_clear,
        }

        handler = handlers.get(command)
        if not handler:
            raise UsageError(f"Unknown command: {command}")

        return await handler(args)

    async def _handle_add(self, args: List[str]) -> str:
        if len(args) < 2:
            raise UsageError("add needs <entry_id> <content>")

        entry_id, content = args[0], args[1]
        if await self.index.add(entry_id, content) is None:
            raise CommandFailed("Failed to add entry")
        return f"Added entry: {entry_id}"

    async def _handle_search(self, args: List[str]) -> str:
        if len(args) < 2:
            raise UsageError("search needs <query> <limit>")

        ids = await self.index.search_similar(args[0], parse_limit(args[1]))
        return dump([SimilarHit(id=entry_id).model_dump() for entry_id in ids])

    async def _handle_clear(self, args: List[str]) -> str:
        if not await self.index.clear():
            raise CommandFailed("Failed to clear index")
        return "Index cleared"


async def async_main(argv: List[str], settings: Optional[Settings] = None) -> int:
    prog = argv[0] if argv else "clipboard-embeddings"
    if len(argv) < 3:
        print(USAGE.format(prog=prog), file=sys.stderr)
        return 1

    settings = settings or Settings.from_env()
    index_path, command, args = argv[1], argv[2], argv[3:]

    index = EmbeddingIndex(index_path, settings)
    try:
        await index.open()
    except StoreOpenError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        output = await EmbeddingCLI(index).dispatch(command, args)
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
        await index.close()

    print(output)
    return 0


def main():
    """Synchronous entry point for console script."""
    sys.exit(run(async_main))


if __name__ == "__main__":
    main()
