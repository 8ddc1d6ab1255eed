"""Randomness helpers for rune drawing and pool ordering."""

import hashlib
import random
from typing import List, Optional, Sequence, TypeVar

from ..models import Orientation, Rune

T = TypeVar("T")

_system_random = random.SystemRandom()


def seeded_random(seed: str, salt: str = "") -> random.Random:
    """Create a deterministic random.Random instance from seed and optional salt.

    Args:
        seed: Base seed string
        salt: Optional salt to modify the seed (e.g., session generation)

    Returns:
        random.Random instance that will produce deterministic sequences
    """
    combined = f"{seed}{salt}"
    hash_obj = hashlib.sha256(combined.encode('utf-8'))
    int_seed = int(hash_obj.hexdigest(), 16)

    # Mask to fit within Python's random seed range
    int_seed = int_seed & ((1 << 31) - 1)

    return random.Random(int_seed)


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a uniformly random permutation of `items` as a new list.

    Every call draws a fresh permutation; nothing is cached.
    """
    out = list(items)
    (rng or _system_random).shuffle(out)
    return out


def sorted_by_name(runes: Sequence[Rune]) -> List[Rune]:
    """Fixed lexicographic order, mirroring a physical set laid out by name."""
    return sorted(runes, key=lambda r: (r.name.casefold(), r.name))


def coin_flip(rng: Optional[random.Random] = None) -> bool:
    return (rng or _system_random).random() < 0.5


def resolve_orientation(rune: Rune, rng: Optional[random.Random] = None) -> Orientation:
    """Virtual draw: reversible runes land either way at 50/50, others upright."""
    if rune.is_reversible and coin_flip(rng):
        return Orientation.REVERSED
    return Orientation.UPRIGHT
