"""RocksDB storage backend for clipboard entries."""

import logging
import secrets
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from clipboard_history.core import keys
from clipboard_history.core.config import Settings
from clipboard_history.core.kv import KeyValueStore
from clipboard_history.models.schemas import AddResult, ClipboardEntry, EntryRecord

logger = logging.getLogger(__name__)


def display_time(timestamp: int) -> str:
    """Local wall-clock ``HH:MM`` for a unix timestamp."""
    return time.strftime("%H:%M", time.localtime(timestamp))


class EntryStore:
    """Bounded, time-ordered clipboard history on an ordered key-value store.

    Every multi-key mutation goes through a single atomic batch, so a live
    entry always has exactly one primary, content, recency and index key.
    The store is meant to be opened for one operation and closed again.
    """

    def __init__(
        self,
        db_path: str,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.settings = settings or Settings()
        self.clock = clock

        self.kv: Optional[KeyValueStore] = None
        self._initialized = False

    async def _ensure_initialized(self):
        """Lazy open of the underlying store.

        Open failures propagate: nothing can run without the store.
        """
        if self._initialized:
            return

        self.kv = KeyValueStore.open(self.db_path, self.settings)
        self._initialized = True

    async def open(self) -> "EntryStore":
        await self._ensure_initialized()
        return self

    async def close(self):
        if self.kv is not None:
            self.kv.close()
        self.kv = None
        self._initialized = False

    async def __aenter__(self) -> "EntryStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # --- reads ---

    def _read_record(self, value: bytes) -> Optional[EntryRecord]:
        try:
            return EntryRecord.model_validate_json(value)
        except ValidationError as e:
            logger.warning("Skipping undecodable entry record: %s", e)
            return None

    def _load_entry(self, value: bytes) -> Optional[ClipboardEntry]:
        """Join a primary record with its content."""
        record = self._read_record(value)
        if record is None:
            return None

        content = self.kv.get(keys.content_key(record.id))
        if content is None:
            logger.warning("Entry %s has no content key, skipping", record.id)
            return None

        try:
            return ClipboardEntry.from_record(record, content.decode("utf-8"))
        except UnicodeDecodeError as e:
            logger.warning("Skipping entry %s with undecodable content: %s", record.id, e)
            return None

    def _primary_key_for(self, entry_id: str) -> Optional[bytes]:
        return self.kv.get(keys.index_key(entry_id))

    def _next_seq(self) -> int:
        value = self.kv.get(keys.NEXT_SEQ_KEY)
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError:
            # Rebuild from the newest primary key
            logger.warning("Corrupt sequence counter %r, recovering", value)
            for key, _ in self.kv.scan(keys.ENTRY_PREFIX, reverse=True):
                try:
                    return keys.parse_entry_key(key).seq + 1
                except ValueError:
                    continue
            return 0

    def _find_duplicate(self, content: str) -> Optional[str]:
        """Id of a recent entry holding exactly ``content``.

        Only the newest ``duplicate_window`` primary records are checked.
        Records that cannot be promoted (undecodable, or not the key the id
        index points at) are skipped.
        """
        wanted = content.encode("utf-8")
        checked = 0
        for key, value in self.kv.scan(keys.ENTRY_PREFIX, reverse=True):
            if checked >= self.settings.duplicate_window:
                break
            checked += 1
            try:
                entry_id = keys.parse_entry_key(key).entry_id
            except ValueError:
                logger.warning("Skipping malformed primary key %r", key)
                continue
            if self.kv.get(keys.content_key(entry_id)) != wanted:
                continue
            if self._primary_key_for(entry_id) != key:
                logger.warning("Skipping unindexed entry %s", entry_id)
                continue
            if self._read_record(value) is None:
                continue
            return entry_id
        return None

    def _mint_id(self, timestamp: int) -> str:
        while True:
            entry_id = f"{timestamp}_{secrets.token_hex(4)}"
            if self._primary_key_for(entry_id) is None:
                return entry_id
            logger.debug("Id collision on %s, drawing again", entry_id)

    # --- operations ---

    async def add(
        self, content: str, type: str, preview: str, size: str
    ) -> Optional[AddResult]:
        """Store a clipboard entry, or promote an identical recent one.

        A ``moved`` result carries the stored type, preview and size of the
        promoted entry, not the arguments of this call. Returns None when the
        write fails.
        """
        await self._ensure_initialized()

        timestamp = int(self.clock())
        time_str = display_time(timestamp)

        existing_id = self._find_duplicate(content)
        if existing_id is not None:
            promoted = await self.promote(existing_id, timestamp, time_str)
            if promoted is None:
                return None
            return AddResult(action="moved", **promoted.model_dump())

        entry = ClipboardEntry(
            id=self._mint_id(timestamp),
            content=content,
            type=type,
            preview=preview,
            size=size,
            timestamp=timestamp,
            time=time_str,
        )

        seq = self._next_seq()
        primary = keys.entry_key(timestamp, seq, entry.id)

        try:
            batch = self.kv.batch()
            batch.put(primary, entry.to_record().model_dump_json().encode("utf-8"))
            batch.put(keys.content_key(entry.id), content.encode("utf-8"))
            batch.put(keys.recent_key(timestamp, seq, entry.id), entry.id.encode("utf-8"))
            batch.put(keys.index_key(entry.id), primary)
            batch.put(keys.NEXT_SEQ_KEY, str(seq + 1).encode("utf-8"))
            self.kv.write(batch)
        except Exception as e:
            logger.error("Write failed for new entry %s: %s", entry.id, e)
            return None

        await self.cleanup(self.settings.max_entries)

        return AddResult(action="added", **entry.model_dump())

    async def promote(
        self, entry_id: str, timestamp: int, time_str: str
    ) -> Optional[ClipboardEntry]:
        """Move an entry to ``timestamp``, keeping its id and content key."""
        await self._ensure_initialized()

        old_primary = self._primary_key_for(entry_id)
        if old_primary is None:
            logger.warning("Cannot promote unknown entry %s", entry_id)
            return None

        value = self.kv.get(old_primary)
        record = self._read_record(value) if value is not None else None
        content = self.kv.get(keys.content_key(entry_id))
        if record is None or content is None:
            logger.warning("Entry %s is incomplete, not promoting", entry_id)
            return None

        record.timestamp = timestamp
        record.time = time_str

        seq = self._next_seq()
        new_primary = keys.entry_key(timestamp, seq, entry_id)

        try:
            batch = self.kv.batch()
            batch.delete(old_primary)
            batch.delete(keys.recent_key_for(old_primary))
            batch.put(new_primary, record.model_dump_json().encode("utf-8"))
            batch.put(keys.recent_key(timestamp, seq, entry_id), entry_id.encode("utf-8"))
            batch.put(keys.index_key(entry_id), new_primary)
            batch.put(keys.NEXT_SEQ_KEY, str(seq + 1).encode("utf-8"))
            self.kv.write(batch)
        except Exception as e:
            logger.error("Promotion write failed for %s: %s", entry_id, e)
            return None

        return ClipboardEntry.from_record(record, content.decode("utf-8"))

    async def recent(self, limit: int = 25) -> List[ClipboardEntry]:
        """Newest entries first."""
        await self._ensure_initialized()

        results = []
        if limit <= 0:
            return results

        for key, value in self.kv.scan(keys.ENTRY_PREFIX, reverse=True):
            entry = self._load_entry(value)
            if entry is None:
                continue
            results.append(entry)
            if len(results) >= limit:
                break

        return results

    async def search(self, query: str, limit: int = 100) -> List[ClipboardEntry]:
        """Entries whose content contains ``query``, ignoring case."""
        await self._ensure_initialized()

        results = []
        if limit <= 0:
            return results

        query_lower = query.lower()
        for key, value in self.kv.scan(keys.CONTENT_PREFIX):
            try:
                content = value.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping undecodable content under %r", key)
                continue
            if query_lower not in content.lower():
                continue

            entry_id = keys.id_from_content_key(key)
            primary = self._primary_key_for(entry_id)
            record_value = self.kv.get(primary) if primary is not None else None
            record = self._read_record(record_value) if record_value is not None else None
            if record is None:
                continue

            results.append(ClipboardEntry.from_record(record, content))
            if len(results) >= limit:
                break

        return results

    async def get(self, entry_id: str) -> Optional[ClipboardEntry]:
        """Look an entry up by id."""
        await self._ensure_initialized()

        primary = self._primary_key_for(entry_id)
        if primary is None:
            return None
        value = self.kv.get(primary)
        if value is None:
            return None
        return self._load_entry(value)

    async def count(self) -> int:
        await self._ensure_initialized()

        total = 0
        for key in self.kv.keys(keys.ENTRY_PREFIX):
            try:
                keys.parse_entry_key(key)
            except ValueError:
                # cleanup cannot evict these either
                continue
            total += 1
        return total

    async def cleanup(self, max_entries: Optional[int] = None) -> int:
        """Evict the oldest entries beyond ``max_entries``.

        Returns the number of entries removed.
        """
        await self._ensure_initialized()

        if max_entries is None:
            max_entries = self.settings.max_entries

        entries = []
        for key in self.kv.keys(keys.ENTRY_PREFIX):
            try:
                entries.append((keys.parse_entry_key(key), key))
            except ValueError:
                logger.warning("Skipping malformed primary key %r", key)

        excess = len(entries) - max(max_entries, 0)
        if excess <= 0:
            return 0

        entries.sort()
        batch = self.kv.batch()
        for order, primary in entries[:excess]:
            batch.delete(primary)
            batch.delete(keys.recent_key_for(primary))
            batch.delete(keys.content_key(order.entry_id))
            batch.delete(keys.index_key(order.entry_id))

        try:
            self.kv.write(batch)
        except Exception as e:
            logger.error("Cleanup write failed: %s", e)
            return 0

        logger.info("Evicted %d entries beyond %d", excess, max_entries)
        return excess

    async def clear(self) -> bool:
        """Delete every key in the store.

        This includes the embedding index keys when both live in the same
        directory.
        """
        await self._ensure_initialized()

        batch = self.kv.batch()
        for key in self.kv.keys():
            batch.delete(key)

        try:
            self.kv.write(batch)
            return True
        except Exception as e:
            logger.error("Clear failed: %s", e)
            return False

    async def get_stats(self) -> Dict[str, Any]:
        """Get statistics about stored entries."""
        await self._ensure_initialized()

        total = 0
        oldest = None
        newest = None
        for key in self.kv.keys(keys.ENTRY_PREFIX):
            try:
                timestamp = keys.parse_entry_key(key).timestamp
            except ValueError:
                continue
            total += 1
            if oldest is None:
                oldest = timestamp
            newest = timestamp

        return {
            "total_entries": total,
            "max_entries": self.settings.max_entries,
            "oldest_entry": oldest,
            "newest_entry": newest,
            "storage_path": self.db_path,
        }
