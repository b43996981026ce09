# jddf_random.py · v0.1.0
"""
Random source threaded through every generation call.

No hidden global state: each ``RandomSource`` owns its own ``random.Random``,
so a fixed seed reproduces the same stream of values.
"""
from __future__ import annotations

import random
import struct
from collections.abc import Mapping
from typing import Any, Collection, Iterable, List, Optional, TypeVar

__version__ = "0.1.0"

T = TypeVar("T")

PRINTABLE_LO = 32
PRINTABLE_HI = 126
MAX_SHORT_LEN = 7


class RandomSource:
    def __init__(self, seed: Optional[int] = None) -> None:
        self.rng = random.Random(seed)

    @classmethod
    def from_random(cls, rng: random.Random) -> "RandomSource":
        src = cls.__new__(cls)
        src.rng = rng
        return src

    def boolean(self) -> bool:
        return bool(self.rng.getrandbits(1))

    def integer(self, lo: int, hi: int) -> int:
        """Uniform over the closed range [lo, hi]."""
        return self.rng.randint(lo, hi)

    def int_of_width(self, bits: int, signed: bool) -> int:
        if signed:
            return self.integer(-(1 << (bits - 1)), (1 << (bits - 1)) - 1)
        return self.integer(0, (1 << bits) - 1)

    # Floats are drawn as raw bit patterns, so NaN, ±inf and subnormals all occur.
    def float32(self) -> float:
        return struct.unpack("<f", struct.pack("<I", self.rng.getrandbits(32)))[0]

    def float64(self) -> float:
        return struct.unpack("<d", struct.pack("<Q", self.rng.getrandbits(64)))[0]

    def choice(self, items: Collection[Any]) -> Any:
        """Pick one item uniformly; a mapping yields a ``(key, value)`` pair.

        Selection is by index over the collection's size only, so sets and
        mappings behave the same as sequences.
        """
        if not items:
            raise ValueError("cannot choose from an empty collection")
        pool = list(items.items()) if isinstance(items, Mapping) else list(items)
        return pool[self.integer(0, len(pool) - 1)]

    def shuffled(self, items: Iterable[T]) -> List[T]:
        out = list(items)
        self.rng.shuffle(out)
        return out

    def short_string(self, max_len: int = MAX_SHORT_LEN) -> str:
        length = self.integer(0, max_len)
        return "".join(chr(self.integer(PRINTABLE_LO, PRINTABLE_HI)) for _ in range(length))
