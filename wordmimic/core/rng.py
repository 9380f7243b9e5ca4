import time
from dataclasses import dataclass
from typing import Callable, Hashable, Iterable, Mapping, Sequence, TypeVar

# Squirrel Eiserloh's SquirrelNoise5 bit-mangling constants
SQ5_BIT_NOISE1 = 0xD2A80A3F
SQ5_BIT_NOISE2 = 0xA884F197
SQ5_BIT_NOISE3 = 0x6C736F4B
SQ5_BIT_NOISE4 = 0xB79F3ABB
SQ5_BIT_NOISE5 = 0x1B56C4F5

MASK_UINT32 = 0xFFFFFFFF
MAX_INT32 = 0x7FFFFFFF

T = TypeVar("T")
K = TypeVar("K", bound=Hashable)


def squirrel_noise5(position: int, seed: int = 0) -> int:
    """Hash (position, seed) into an unsigned 32-bit integer."""
    bits = position & MASK_UINT32
    bits = (bits * SQ5_BIT_NOISE1) & MASK_UINT32
    bits = (bits + (seed & MASK_UINT32)) & MASK_UINT32
    bits ^= bits >> 9
    bits = (bits + SQ5_BIT_NOISE2) & MASK_UINT32
    bits ^= bits >> 11
    bits = (bits * SQ5_BIT_NOISE3) & MASK_UINT32
    bits ^= bits >> 13
    bits = (bits + SQ5_BIT_NOISE4) & MASK_UINT32
    bits ^= bits >> 15
    bits = (bits * SQ5_BIT_NOISE5) & MASK_UINT32
    bits ^= bits >> 17
    return bits


def noise_zero_to_one(position: int, seed: int = 0) -> float:
    # divide by 2**32 so 1.0 is never reached
    return squirrel_noise5(position, seed) / 4294967296.0


def new_undeterministic_seed() -> int:
    return (time.time_ns() * time.perf_counter_ns()) & MAX_INT32


@dataclass(frozen=True)
class RngState:
    seed: int
    position: int


class DeterministicRng:
    """
    Position-based pseudo-random source.

    Every draw is ``noise(position, seed)`` followed by ``position += 1``, so a
    given seed and call sequence always reproduce the same values. An instance
    must stay with a single owner: two callers advancing the same position
    would interleave their sequences.
    """

    def __init__(self, seed: int = 0, position: int = 0,
                 noise: Callable[[int, int], float] = noise_zero_to_one):
        self.noise = noise
        self.seed = seed
        self.initial_position = position
        self.position = position

    @property
    def state(self) -> RngState:
        return RngState(seed=self.seed, position=self.position)

    def reset_position(self, position: int | None = None) -> None:
        """Rewind to the initial position, or make ``position`` the new initial one and rewind."""
        if position is not None:
            self.initial_position = position
        self.position = self.initial_position

    def draw(self) -> float:
        value = self.noise(self.position, self.seed)
        self.position += 1
        return value

    def select(self, items: Sequence[T]) -> tuple[int, T]:
        if not items:
            raise IndexError("cannot select from an empty sequence")
        index = int(self.draw() * len(items))
        return index, items[index]

    def select_weighted_items(self, items: Iterable[tuple[T, int]]) -> T | None:
        """
        Weighted choice over ``(value, weight)`` pairs.

        Each candidate consumes one draw, in iteration order, and scores
        ``draw() * weight``; the first highest score wins. Returns None when
        there is no candidate.
        """
        selected = None
        selected_score = float("-inf")
        for value, weight in items:
            score = self.draw() * weight
            if score > selected_score:
                selected = value
                selected_score = score
        return selected

    def select_weighted(self, weights: Mapping[K, int], excluded: Iterable[K] = ()) -> K | None:
        excluded = frozenset(excluded)
        return self.select_weighted_items(
            (key, weight) for key, weight in weights.items() if key not in excluded
        )

    def is_chance(self, zero_to_one_chance: float) -> bool:
        return self.draw() < zero_to_one_chance
