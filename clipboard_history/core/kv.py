"""RocksDB key-value backend shared by the entry store and the embedding index."""

import logging
import os
from typing import Iterator, Optional, Tuple

from rocksdict import DBCompressionType, Options, Rdict, WriteBatch

from clipboard_history.core.config import Settings

logger = logging.getLogger(__name__)


class StoreOpenError(Exception):
    """The store directory could not be opened."""


def prefix_end(prefix: bytes) -> bytes:
    """Smallest key greater than every key starting with ``prefix``."""
    stripped = prefix.rstrip(b"\xff")
    if not stripped:
        return b""
    return stripped[:-1] + bytes([stripped[-1] + 1])


class KeyValueStore:
    """Ordered byte-keyed store with atomic batches.

    Keys and values are raw bytes. A RocksDB directory can only be opened by
    one process at a time, so a second concurrent open fails with
    ``StoreOpenError``.
    """

    def __init__(self, db: Rdict, path: str):
        self.db = db
        self.path = path

    @classmethod
    def open(cls, path: str, settings: Optional[Settings] = None) -> "KeyValueStore":
        settings = settings or Settings()

        options = Options(raw_mode=True)
        options.create_if_missing(True)
        options.set_compression_type(DBCompressionType.snappy())
        options.set_write_buffer_size(settings.write_buffer_size)
        options.set_max_write_buffer_number(settings.max_write_buffers)
        options.set_target_file_size_base(settings.target_file_size)

        try:
            os.makedirs(path, exist_ok=True)
            db = Rdict(path, options=options)
        except Exception as e:
            raise StoreOpenError(f"Cannot open store at {path}: {e}") from e

        logger.debug("Opened store at %s", path)
        return cls(db, path)

    def get(self, key: bytes) -> Optional[bytes]:
        return self.db.get(key)

    def put(self, key: bytes, value: bytes):
        self.db.put(key, value)

    def delete(self, key: bytes):
        self.db.delete(key)

    def batch(self) -> WriteBatch:
        """Start an empty batch; apply it with ``write``."""
        return WriteBatch(raw_mode=True)

    def write(self, batch: WriteBatch):
        """Apply every operation of ``batch`` atomically."""
        self.db.write(batch)

    def scan(
        self, prefix: bytes = b"", reverse: bool = False
    ) -> Iterator[Tuple[bytes, bytes]]:
        """Yield ``(key, value)`` pairs whose key starts with ``prefix``.

        Keys come in byte order, or reverse byte order when ``reverse`` is set.
        """
        it = self.db.iter()
        if reverse:
            end = prefix_end(prefix)
            if end:
                it.seek_for_prev(end)
                # seek_for_prev lands on ``end`` itself when it exists
                if it.valid() and it.key() == end:
                    it.prev()
            else:
                it.seek_to_last()
        else:
            it.seek(prefix)

        while it.valid():
            key = it.key()
            if not key.startswith(prefix):
                break
            yield key, it.value()
            if reverse:
                it.prev()
            else:
                it.next()

    def keys(self, prefix: bytes = b"") -> Iterator[bytes]:
        for key, _ in self.scan(prefix):
            yield key

    def close(self):
        try:
            self.db.close()
        except Exception as e:
            logger.warning("Error closing store at %s: %s", self.path, e)
