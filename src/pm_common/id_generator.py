"""Snowflake-style ID generator for market, option and position IDs.

IDs are decimal strings of one width for the foreseeable epoch range, so
string ordering matches creation ordering.
"""

import threading
import time


class SnowflakeIdGenerator:
    """Layout (64 bits): 41-bit ms timestamp | 10-bit machine_id | 12-bit sequence."""

    _EPOCH_MS = 1_700_000_000_000
    _MACHINE_BITS = 10
    _SEQUENCE_BITS = 12
    _MAX_SEQUENCE = (1 << _SEQUENCE_BITS) - 1

    def __init__(self, machine_id: int = 0) -> None:
        if not (0 <= machine_id < (1 << self._MACHINE_BITS)):
            raise ValueError(f"machine_id must be 0-{(1 << self._MACHINE_BITS) - 1}")
        self._machine_id = machine_id
        self._sequence = 0
        self._last_timestamp_ms = -1
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            ts = int(time.time() * 1000)
            if ts < self._last_timestamp_ms:
                # Clock moved backwards: keep issuing from the last timestamp.
                ts = self._last_timestamp_ms
            if ts == self._last_timestamp_ms:
                self._sequence = (self._sequence + 1) & self._MAX_SEQUENCE
                if self._sequence == 0:
                    ts = self._last_timestamp_ms + 1
            else:
                self._sequence = 0

            self._last_timestamp_ms = ts
            id_int = (
                ((ts - self._EPOCH_MS) << (self._MACHINE_BITS + self._SEQUENCE_BITS))
                | (self._machine_id << self._SEQUENCE_BITS)
                | self._sequence
            )
            return str(id_int)

    def next_ids(self, count: int) -> list[str]:
        return [self.next_id() for _ in range(count)]


_default_generator = SnowflakeIdGenerator()


def generate_id() -> str:
    """Generate a unique snowflake-style string ID using the module-level default generator."""
    return _default_generator.next_id()


def generate_ids(count: int) -> list[str]:
    return _default_generator.next_ids(count)
