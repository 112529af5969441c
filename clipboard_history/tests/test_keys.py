"""Tests for the entry store key layout."""

import pytest

from clipboard_history.core import keys
from clipboard_history.core.kv import prefix_end


class TestKeyLayout:
    """Test key encoding and ordering."""

    def test_timestamp_order_survives_digit_count_change(self):
        """Test byte order matches numeric order across digit counts."""
        shorter = keys.entry_key(999_999_999, 0, "a")
        longer = keys.entry_key(1_000_000_000, 0, "a")

        assert shorter < longer
        assert keys.recent_key(999_999_999, 0, "a") < keys.recent_key(1_000_000_000, 0, "a")

    def test_sequence_breaks_ties_within_a_second(self):
        """Test entries sharing a timestamp order by sequence, not id."""
        first = keys.entry_key(1_700_000_000, 9, "zzz")
        second = keys.entry_key(1_700_000_000, 10, "aaa")

        assert first < second

    def test_parse_entry_key(self):
        """Test decoding a primary key."""
        key = keys.entry_key(1_700_000_000, 42, "1700000000_deadbeef")

        order = keys.parse_entry_key(key)

        assert order.timestamp == 1_700_000_000
        assert order.seq == 42
        assert order.entry_id == "1700000000_deadbeef"

    @pytest.mark.parametrize(
        "key",
        [
            b"content:abc",
            b"entry:123:456:abc",
            b"entry:garbage",
            b"entry:" + b"0" * 20 + b":" + b"0" * 20 + b":",
        ],
    )
    def test_parse_rejects_malformed_keys(self, key):
        """Test malformed primary keys raise ValueError."""
        with pytest.raises(ValueError):
            keys.parse_entry_key(key)

    def test_recent_key_for_primary(self):
        """Test the recency marker mirrors the primary key."""
        primary = keys.entry_key(1_700_000_000, 3, "x_1")

        assert keys.recent_key_for(primary) == keys.recent_key(1_700_000_000, 3, "x_1")

    def test_negative_components_rejected(self):
        """Test negative timestamps cannot be encoded."""
        with pytest.raises(ValueError):
            keys.entry_key(-1, 0, "a")

    def test_content_and_index_keys(self):
        """Test id-only keys."""
        assert keys.content_key("abc") == b"content:abc"
        assert keys.index_key("abc") == b"index:abc"
        assert keys.id_from_content_key(b"content:abc") == "abc"

    def test_prefix_end(self):
        """Test the exclusive upper bound of a prefix."""
        assert prefix_end(b"entry:") == b"entry;"
        assert prefix_end(b"a\xff") == b"b"
        assert prefix_end(b"\xff\xff") == b""
