"""
Round Robin Pairing — circle method with bye handling.

Produces per-round pairings for one or more full round robins. The first
participant stays fixed while the rest rotate one position per round; an odd
field gets a synthetic BYE slot so every round is conflict-free.
"""

from dataclasses import dataclass
from typing import Hashable, Iterable, List, Optional, Sequence

from league_scheduler.services.scheduling_errors import (
    INVALID_ROUND_COUNT,
    NOT_ENOUGH_PARTICIPANTS,
    SchedulingError,
)

# Rotation placeholder for odd fields
_BYE = object()


@dataclass(frozen=True)
class RoundRobinPair:
    """
    One pairing of a round. round_number and sequence_in_round are 1-based.

    away is None when `home` sits the round out (bye).
    """

    round_number: int
    sequence_in_round: int
    home: Hashable
    away: Optional[Hashable]

    @property
    def is_bye(self) -> bool:
        return self.away is None


# =============================================================================
# Counting helpers
# =============================================================================

def rr_round_count(participant_count: int) -> int:
    """
    Rounds in one round robin.
    Even n: n-1 rounds. Odd n: n rounds (one BYE per round).
    """
    if participant_count < 2:
        return 0
    if participant_count % 2 == 0:
        return participant_count - 1
    return participant_count


def rr_match_count(participant_count: int, rounds: int = 1) -> int:
    """Real matches over `rounds` round robins: rounds * C(n, 2)."""
    return rounds * (participant_count * (participant_count - 1)) // 2


def unique_participants(participants: Iterable[Hashable]) -> List[Hashable]:
    """Drop repeated ids, keeping the first occurrence and the input order."""
    seen = set()
    unique: List[Hashable] = []
    for pid in participants:
        if pid in seen:
            continue
        seen.add(pid)
        unique.append(pid)
    return unique


def matches_only(pairs: Iterable[RoundRobinPair]) -> List[RoundRobinPair]:
    """Pairings that produce a match (byes removed)."""
    return [p for p in pairs if not p.is_bye]


# =============================================================================
# Pairing generation
# =============================================================================

def _single_cycle(teams: Sequence[Hashable]) -> List[List[tuple]]:
    """
    One full round robin as a list of rounds of (home, away) tuples.
    away is _BYE for the participant resting that round.
    """
    positions = list(teams)
    if len(positions) % 2 == 1:
        positions.append(_BYE)

    total = len(positions)
    half = total // 2
    cycle: List[List[tuple]] = []

    for round_idx in range(total - 1):
        round_pairs: List[tuple] = []
        for i in range(half):
            a, b = positions[i], positions[total - 1 - i]
            if a is _BYE:
                round_pairs.append((b, _BYE))
            elif b is _BYE:
                round_pairs.append((a, _BYE))
            elif round_idx % 2 == 0:
                round_pairs.append((a, b))
            else:
                # Alternate venue by round so nobody hosts every early round
                round_pairs.append((b, a))
        cycle.append(round_pairs)
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return cycle


def generate_round_robin_pairs(
    participants: Sequence[Hashable],
    rounds: int = 1,
) -> List[RoundRobinPair]:
    """
    Round robin pairings for `participants`, repeated `rounds` times.

    Every odd-numbered pass (the second, fourth, ...) swaps home and away, so
    a double round robin plays each ordered pair exactly once. Bye pairings
    are kept in the output (away=None); the fixture materializer skips them.

    Raises:
        SchedulingError: not_enough_participants for fewer than 2 distinct ids,
            invalid_round_count for rounds < 1
    """
    teams = unique_participants(participants)
    if len(teams) < 2:
        raise SchedulingError(NOT_ENOUGH_PARTICIPANTS, f"round robin needs 2 participants, got {len(teams)}")
    if rounds < 1:
        raise SchedulingError(INVALID_ROUND_COUNT, f"rounds must be >= 1, got {rounds}")

    base = _single_cycle(teams)
    rounds_per_cycle = len(base)

    result: List[RoundRobinPair] = []
    for cycle in range(rounds):
        mirrored = cycle % 2 == 1
        for round_idx, round_pairs in enumerate(base):
            round_number = cycle * rounds_per_cycle + round_idx + 1
            seq = 0
            # Real pairings first, bye last, so sequence numbers match kickoff slots
            ordered = sorted(round_pairs, key=lambda p: p[1] is _BYE)
            for home, away in ordered:
                seq += 1
                if away is _BYE:
                    result.append(RoundRobinPair(round_number, seq, home, None))
                elif mirrored:
                    result.append(RoundRobinPair(round_number, seq, away, home))
                else:
                    result.append(RoundRobinPair(round_number, seq, home, away))

    return result


def pairs_by_round(pairs: Iterable[RoundRobinPair]) -> List[List[RoundRobinPair]]:
    """Group pairings into rounds, ordered by round_number."""
    rounds: dict = {}
    for pair in pairs:
        rounds.setdefault(pair.round_number, []).append(pair)
    return [sorted(rounds[r], key=lambda p: p.sequence_in_round) for r in sorted(rounds)]
