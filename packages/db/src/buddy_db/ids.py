# This project was developed with assistance from AI tools.
"""UUIDv7 generator (RFC 9562).

Layout: 48-bit unix millisecond timestamp | version (7) | 12-bit counter |
variant (0b10) | 62 random bits.

The 12-bit ``rand_a`` field holds a counter seeded randomly at each new
millisecond and incremented for every ID issued within that millisecond,
so IDs generated by one process sort in creation order. If the clock steps
backwards, the last timestamp is reused; the timestamp prefix never
decreases.
"""

import os
import threading
import time
import uuid

_COUNTER_MAX = 0xFFF
_lock = threading.Lock()
_last_ms = -1
_counter = 0


def _next_timestamp_and_counter() -> tuple[int, int]:
    global _last_ms, _counter  # noqa: PLW0603

    with _lock:
        now_ms = time.time_ns() // 1_000_000
        if now_ms > _last_ms:
            _last_ms = now_ms
            # Seed in the lower half so a burst has room to count upward.
            _counter = int.from_bytes(os.urandom(2), "big") & 0x7FF
        else:
            _counter += 1
            if _counter > _COUNTER_MAX:
                # Counter exhausted: borrow the next millisecond.
                _last_ms += 1
                _counter = 0
        return _last_ms, _counter


def uuid7() -> uuid.UUID:
    """Return a new, time-ordered version 7 UUID."""
    ts_ms, counter = _next_timestamp_and_counter()
    rand_b = int.from_bytes(os.urandom(8), "big") & ((1 << 62) - 1)

    value = (ts_ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76
    value |= counter << 64
    value |= 0b10 << 62
    value |= rand_b
    return uuid.UUID(int=value)


def uuid7_timestamp_ms(value: uuid.UUID) -> int:
    """Extract the millisecond timestamp prefix from a UUIDv7."""
    return value.int >> 80
