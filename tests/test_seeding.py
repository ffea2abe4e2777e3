"""
Tests for bracket sizing, seed order and the deterministic shuffle.
"""

import random

import pytest

from league_scheduler.services.seeding import (
    bye_count,
    generate_seed_order,
    highest_power_of_two,
    is_power_of_two,
    shuffle_numbers,
)


class TestHighestPowerOfTwo:
    def test_examples(self):
        assert highest_power_of_two(6) == 8
        assert highest_power_of_two(8) == 8
        assert highest_power_of_two(9) == 16
        assert highest_power_of_two(2) == 2

    @pytest.mark.parametrize("n", range(1, 130))
    def test_smallest_power_at_least_n(self, n):
        p = highest_power_of_two(n)
        assert is_power_of_two(p)
        assert p >= n
        assert p == 1 or p // 2 < n
        assert highest_power_of_two(p) == p

    def test_bye_count(self):
        assert bye_count(6) == 2
        assert bye_count(8) == 0
        assert bye_count(9) == 7
        assert bye_count(1) == 0


class TestSeedOrder:
    def test_known_orders(self):
        assert generate_seed_order(2) == [1, 2]
        assert generate_seed_order(4) == [1, 4, 2, 3]
        assert generate_seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]
        assert generate_seed_order(16) == [1, 16, 8, 9, 4, 13, 5, 12, 2, 15, 7, 10, 3, 14, 6, 11]

    @pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
    def test_permutation(self, size):
        assert sorted(generate_seed_order(size)) == list(range(1, size + 1))

    @pytest.mark.parametrize("size", [2, 4, 8, 16, 32, 64])
    def test_first_round_pairs_sum(self, size):
        order = generate_seed_order(size)
        for k in range(0, size, 2):
            assert order[k] + order[k + 1] == size + 1

    @pytest.mark.parametrize("size", [4, 8, 16, 32, 64])
    def test_top_two_seeds_meet_only_in_final(self, size):
        order = generate_seed_order(size)
        half = size // 2
        assert order.index(1) < half <= order.index(2)


class TestShuffle:
    def test_same_seed_same_permutation(self):
        values = list(range(1, 21))
        assert shuffle_numbers(values, 42) == shuffle_numbers(values, 42)

    def test_is_permutation_and_input_untouched(self):
        values = list(range(1, 21))
        shuffled = shuffle_numbers(values, 7)
        assert sorted(shuffled) == values
        assert values == list(range(1, 21))

    def test_accepts_random_instance(self):
        values = list(range(10))
        assert shuffle_numbers(values, random.Random(3)) == shuffle_numbers(values, 3)

    def test_random_instance_state_advances(self):
        rng = random.Random(3)
        first = shuffle_numbers(list(range(10)), rng)
        second = shuffle_numbers(list(range(10)), rng)
        assert sorted(first) == sorted(second)
        assert first == shuffle_numbers(list(range(10)), 3)
