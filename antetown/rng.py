"""
Deterministic random number generation for antetown rounds.

Every round owns exactly one DeterministicRNG. The generator is mulberry32,
so the full sequence is a pure function of the seed and the number of draws
already consumed. Storing (seed, calls) is enough to resume or audit a round.
"""

import hashlib
import hmac
from typing import Callable, List, MutableSequence, Sequence, TypeVar

T = TypeVar('T')

_MASK32 = 0xFFFFFFFF
_TWO_POW_32 = 4294967296


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


def mulberry32(seed: int) -> Callable[[], float]:
    """Return a generator function yielding floats in [0, 1)."""
    state = seed & _MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + 0x6D2B79F5) & _MASK32
        r = _imul(state ^ (state >> 15), 1 | state)
        r ^= (r + _imul(r ^ (r >> 7), 61 | r)) & _MASK32
        return ((r ^ (r >> 14)) & _MASK32) / _TWO_POW_32

    return next_float


def generate_seed(secret: str, context_id: str, timestamp: int, nonce: int = 0) -> int:
    """Derive an unsigned 32-bit round seed from the server secret and round identity."""
    message = f"{context_id}:{timestamp}:{nonce}".encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), message, hashlib.sha256).digest()
    return int.from_bytes(digest[:4], 'big')


class DeterministicRNG:
    """Counting wrapper around mulberry32.

    `calls` is the number of values drawn so far. Passing `calls` to the
    constructor fast-forwards a fresh generator so the next value matches
    the one the original instance would have produced.
    """

    def __init__(self, seed: int, calls: int = 0):
        if calls < 0:
            raise ValueError("calls must be non-negative")
        self.seed = seed & _MASK32
        self.calls = 0
        self._next = mulberry32(self.seed)
        for _ in range(calls):
            self.random()

    def random(self) -> float:
        self.calls += 1
        return self._next()

    __call__ = random

    def position(self) -> dict:
        return {'seed': self.seed, 'calls': self.calls}

    def __repr__(self):
        return f"DeterministicRNG(seed={self.seed}, calls={self.calls})"


def random_bool(rng: Callable[[], float], probability: float) -> bool:
    """One draw; True with the given probability."""
    return rng() < probability


def random_in_range(rng: Callable[[], float], lo: float, hi: float) -> float:
    """One draw; uniform float in [lo, hi)."""
    return lo + rng() * (hi - lo)


def random_int(rng: Callable[[], float], lo: int, hi: int) -> int:
    """One draw; uniform integer in [lo, hi] inclusive."""
    if hi < lo:
        raise ValueError(f"empty range [{lo}, {hi}]")
    value = lo + int(rng() * (hi - lo + 1))
    return min(value, hi)


def random_choice(rng: Callable[[], float], items: Sequence[T]) -> T:
    if not items:
        raise ValueError("cannot choose from an empty sequence")
    return items[random_int(rng, 0, len(items) - 1)]


def shuffle(rng: Callable[[], float], items: MutableSequence[T]) -> MutableSequence[T]:
    """Fisher-Yates in place; consumes len(items) - 1 draws."""
    for i in range(len(items) - 1, 0, -1):
        j = random_int(rng, 0, i)
        items[i], items[j] = items[j], items[i]
    return items


def sample_sequence(seed: int, count: int, calls: int = 0) -> List[float]:
    """Values `calls+1 .. calls+count` of the sequence for `seed` (audit helper)."""
    rng = DeterministicRNG(seed, calls=calls)
    return [rng.random() for _ in range(count)]
