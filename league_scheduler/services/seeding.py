"""
Seeding & bracket sizing.

Bracket size is the smallest power of two that holds the field; the seed
order is the standard reflected order so that, if chalk holds, seed 1 and
seed 2 only meet in the final.
"""

import random
from typing import List, Sequence, TypeVar, Union

T = TypeVar("T")

RngLike = Union[int, random.Random]


def is_power_of_two(n: int) -> bool:
    return n >= 1 and (n & (n - 1)) == 0


def highest_power_of_two(n: int) -> int:
    """
    Smallest power of two >= n.

      6 -> 8, 8 -> 8, 9 -> 16; anything <= 1 -> 1
    """
    power = 1
    while power < n:
        power *= 2
    return power


def bye_count(participant_count: int) -> int:
    """Byes needed to fill a bracket for `participant_count` entries."""
    if participant_count < 2:
        return 0
    return highest_power_of_two(participant_count) - participant_count


def generate_seed_order(size: int) -> List[int]:
    """Seed numbers in bracket position order.

    Consecutive pairs meet in round 1:
      2 -> [1, 2]
      4 -> [1, 4, 2, 3]
      8 -> [1, 8, 4, 5, 2, 7, 3, 6]

    order(2k) is built from order(k) by following each seed s with its
    mirror 2k + 1 - s, which keeps seeds 1 and 2 in opposite halves at
    every level.
    """
    if size <= 1:
        return [1]

    previous = generate_seed_order(size // 2)
    result: List[int] = []
    for seed in previous:
        result.append(seed)
        result.append(size + 1 - seed)
    return result


def make_rng(rng: RngLike) -> random.Random:
    """Accept an explicit Random state or an int seed for a fresh one."""
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


def shuffle_numbers(values: Sequence[T], rng: RngLike) -> List[T]:
    """
    Fisher-Yates shuffle of a copy of `values`.

    Deterministic for a given seed; the input is never modified. Passing a
    Random instance advances that instance's state.
    """
    state = make_rng(rng)
    arr = list(values)
    for i in range(len(arr) - 1, 0, -1):
        j = state.randrange(i + 1)
        arr[i], arr[j] = arr[j], arr[i]
    return arr
