"""Bloom filters, including a ping-pong pair for nonce reuse detection."""

from __future__ import annotations

import hashlib
import math


class BloomFilter:
    """A fixed-size Bloom filter sized for *entries* items at false-positive rate *error*."""

    def __init__(self, entries: int, error: float) -> None:
        if entries < 1:
            raise ValueError("entries must be at least 1")
        if not 0.0 < error < 1.0:
            raise ValueError("error must be between 0 and 1")
        self.entries = entries
        self.error = error
        self.bits = max(8, math.ceil(-entries * math.log(error) / (math.log(2) ** 2)))
        self.hashes = max(1, math.ceil(math.log(2) * self.bits / entries))
        self._array = bytearray((self.bits + 7) // 8)

    def _positions(self, data: bytes):
        digest = hashlib.blake2b(bytes(data), digest_size=16).digest()
        a = int.from_bytes(digest[:8], "little")
        b = int.from_bytes(digest[8:], "little") | 1
        for i in range(self.hashes):
            yield (a + i * b) % self.bits

    def check(self, data: bytes) -> bool:
        """Return True if *data* may have been added."""
        return all(self._array[p >> 3] & (1 << (p & 7)) for p in self._positions(data))

    def add(self, data: bytes) -> bool:
        """Add *data*; return True if it appeared to be present already."""
        present = True
        for p in self._positions(data):
            mask = 1 << (p & 7)
            if not self._array[p >> 3] & mask:
                present = False
                self._array[p >> 3] |= mask
        return present

    def clear(self) -> None:
        """Forget everything added."""
        self._array = bytearray(len(self._array))


class PingPongBloom:
    """Two Bloom filters used in turn, so old entries age out.

    Each filter holds half of *entries*; when the active one is full the
    other is emptied and becomes active.
    """

    def __init__(self, entries: int, error: float) -> None:
        self._entries = entries // 2
        self._error = error
        self._filters = [BloomFilter(self._entries, error), BloomFilter(self._entries, error)]
        self._counts = [0, 0]
        self._current = 0

    def check(self, data: bytes) -> bool:
        """Return True if *data* may be in either filter."""
        return any(f.check(data) for f in self._filters)

    def add(self, data: bytes) -> None:
        """Add *data* to the active filter, switching filters when it is full."""
        current = self._current
        self._filters[current].add(data)
        self._counts[current] += 1
        if self._counts[current] >= self._entries:
            self._counts[current] = 0
            self._current = 1 - current
            self._filters[self._current] = BloomFilter(self._entries, self._error)