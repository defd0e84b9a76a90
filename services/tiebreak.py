"""Uniform random choice among equally eligible reviewers.

The generator is a parameter so tests can pass a seeded ``random.Random``;
production code falls back to a module-level generator seeded from system
entropy.
"""
import random
from typing import List, Optional, Sequence, TypeVar


T = TypeVar("T")

_default_rng = random.Random()


def pick_one(candidates: Sequence[T], rng: Optional[random.Random] = None) -> T:
    if not candidates:
        raise ValueError("pick_one needs at least one candidate")
    if len(candidates) == 1:
        return candidates[0]

    rng = rng or _default_rng
    return candidates[int(rng.random() * len(candidates))]


def pick_many(candidates: Sequence[T], k: int, rng: Optional[random.Random] = None) -> List[T]:
    """Up to ``k`` distinct candidates, without replacement."""
    if k <= 0 or not candidates:
        return []
    if len(candidates) == 1:
        return [candidates[0]]

    rng = rng or _default_rng
    return rng.sample(list(candidates), min(k, len(candidates)))
