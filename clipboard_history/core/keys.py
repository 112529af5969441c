"""Key layout of the entry store.

Each live entry owns four keys::

    entry:<ts>:<seq>:<id>    -> EntryRecord JSON
    recent:<ts>:<seq>:<id>   -> id
    content:<id>             -> raw content
    index:<id>               -> primary key of the entry

``ts`` and ``seq`` are zero-padded to 20 digits so byte order matches numeric
order. ``seq`` comes from the durable ``meta:next_seq`` counter and orders
entries that share a timestamp second.
"""

from typing import NamedTuple

ENTRY_PREFIX = b"entry:"
CONTENT_PREFIX = b"content:"
RECENT_PREFIX = b"recent:"
INDEX_PREFIX = b"index:"
NEXT_SEQ_KEY = b"meta:next_seq"

NUMBER_WIDTH = 20


class OrderKey(NamedTuple):
    """Decoded ordering component of a primary or recency key."""

    timestamp: int
    seq: int
    entry_id: str


def _ordered(prefix: bytes, timestamp: int, seq: int, entry_id: str) -> bytes:
    if timestamp < 0 or seq < 0:
        raise ValueError("timestamp and seq must be non-negative")
    return prefix + (
        f"{timestamp:0{NUMBER_WIDTH}d}:{seq:0{NUMBER_WIDTH}d}:{entry_id}"
    ).encode("utf-8")


def entry_key(timestamp: int, seq: int, entry_id: str) -> bytes:
    return _ordered(ENTRY_PREFIX, timestamp, seq, entry_id)


def recent_key(timestamp: int, seq: int, entry_id: str) -> bytes:
    return _ordered(RECENT_PREFIX, timestamp, seq, entry_id)


def content_key(entry_id: str) -> bytes:
    return CONTENT_PREFIX + entry_id.encode("utf-8")


def index_key(entry_id: str) -> bytes:
    return INDEX_PREFIX + entry_id.encode("utf-8")


def parse_entry_key(key: bytes) -> OrderKey:
    """Split a primary key back into (timestamp, seq, id).

    Raises ValueError for keys that do not follow the layout.
    """
    if not key.startswith(ENTRY_PREFIX):
        raise ValueError(f"not a primary key: {key!r}")
    body = key[len(ENTRY_PREFIX):].decode("utf-8")
    timestamp, seq, entry_id = body.split(":", 2)
    if len(timestamp) != NUMBER_WIDTH or len(seq) != NUMBER_WIDTH or not entry_id:
        raise ValueError(f"malformed primary key: {key!r}")
    return OrderKey(int(timestamp), int(seq), entry_id)


def recent_key_for(primary: bytes) -> bytes:
    """Recency marker matching a primary key."""
    return RECENT_PREFIX + primary[len(ENTRY_PREFIX):]


def id_from_content_key(key: bytes) -> str:
    return key[len(CONTENT_PREFIX):].decode("utf-8")
