# This project was developed with assistance from AI tools.
"""UUIDv7 generator tests."""

import uuid
from unittest.mock import patch

from buddy_db import ids
from buddy_db.ids import uuid7, uuid7_timestamp_ms


def test_version_and_variant_bits():
    value = uuid7()
    assert value.version == 7
    assert value.variant == uuid.RFC_4122


def test_thousand_samples_are_unique():
    samples = [uuid7() for _ in range(1000)]
    assert len(set(samples)) == 1000


def test_timestamp_prefix_never_decreases():
    samples = [uuid7() for _ in range(1000)]
    stamps = [uuid7_timestamp_ms(s) for s in samples]
    assert stamps == sorted(stamps)


def test_ids_sort_in_creation_order():
    samples = [uuid7() for _ in range(1000)]
    assert samples == sorted(samples)


def test_timestamp_matches_wall_clock():
    with patch.object(ids.time, "time_ns", return_value=1_760_000_000_123 * 1_000_000):
        value = uuid7()
    assert uuid7_timestamp_ms(value) >= 1_760_000_000_123


def test_clock_moving_backwards_keeps_prefix():
    with patch.object(ids.time, "time_ns", return_value=4_000_000_000_000 * 1_000_000):
        first = uuid7()
    with patch.object(ids.time, "time_ns", return_value=3_999_999_999_000 * 1_000_000):
        second = uuid7()
    assert uuid7_timestamp_ms(second) >= uuid7_timestamp_ms(first)
    assert second > first


def test_counter_overflow_borrows_next_millisecond():
    frozen = 5_000_000_000_000
    with patch.object(ids.time, "time_ns", return_value=frozen * 1_000_000):
        samples = [uuid7() for _ in range(5000)]
    assert len(set(samples)) == 5000
    assert samples == sorted(samples)
    assert uuid7_timestamp_ms(samples[-1]) > frozen
