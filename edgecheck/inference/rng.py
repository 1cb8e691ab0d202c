"""
Seedable 32-bit random source for the permutation test.

Marsaglia's lag-256 multiply-with-carry generator (MWC256, from the DIEHARD
suite): 256 words of state plus one carry word, all 32-bit arithmetic.

    t      = 809430660 * Q[i] + carry      (64-bit product)
    carry  = t >> 32
    Q[i]   = t & 0xFFFFFFFF

The state table is filled from the seed with the LCG j = 69069*j + 12345.

Why not numpy's Generator? The permutation p-value must be reproducible
from one integer seed across platforms and library versions, and the
generator must be an object the caller owns and hands to the engine.
Nothing here is global.
"""

from __future__ import annotations

import logging

from edgecheck.errors import require

log = logging.getLogger("edgecheck.rng")

DEFAULT_SEED = 123456789

_MASK32 = 0xFFFFFFFF
_MULTIPLIER = 809430660
_INITIAL_CARRY = 362436
_STATE_WORDS = 256
_UINT32_RANGE = 4294967296.0  # 2**32, so next_uniform() never returns 1.0


class PseudoRandomSource:
    """Deterministic MWC256 generator. Same seed, same stream."""

    def __init__(self, seed: int = DEFAULT_SEED):
        self._state = [0] * _STATE_WORDS
        self._carry = _INITIAL_CARRY
        self._index = _STATE_WORDS - 1
        self.seed(seed)

    def seed(self, value: int) -> None:
        """Reset the full state (table, carry and index) from an integer seed."""
        j = int(value) & _MASK32
        for k in range(_STATE_WORDS):
            j = (69069 * j + 12345) & _MASK32
            self._state[k] = j
        self._carry = _INITIAL_CARRY
        self._index = _STATE_WORDS - 1
        log.debug("MWC256 seeded with %d", value)

    def next_uint32(self) -> int:
        """Next raw 32-bit output."""
        # The index wraps like an unsigned char: 255 -> 0 on the first draw.
        self._index = (self._index + 1) & 0xFF
        t = _MULTIPLIER * self._state[self._index] + self._carry
        self._carry = t >> 32
        self._state[self._index] = t & _MASK32
        return self._state[self._index]

    def next_uniform(self) -> float:
        """Uniform float in [0, 1)."""
        return self.next_uint32() / _UINT32_RANGE

    def next_below(self, n: int) -> int:
        """Uniform integer in [0, n)."""
        require(n >= 1, f"next_below needs n >= 1, got {n}")
        j = int(self.next_uniform() * n)
        if j >= n:
            j = n - 1
        return j
