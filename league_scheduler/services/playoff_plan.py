"""
Playoff Plan Builder — single-elimination bracket with byes, optional
qualification round and optional gold/silver consolation split.

The bracket is an arena of BracketNode records addressed by index. A node
side either holds a known participant, points at a feeder node (its WINNER
or LOSER), or is absent. A node with one absent side is a bye: the other
side advances without a match. A node with both sides absent is void.

Build order:
1. Qualification round (only when the field exceeds main_bracket_size)
2. Main single-elimination tree, first round laid out by generate_seed_order
3. Consolation pass (optional): quarterfinal-and-later nodes become GOLD,
   quarterfinal losers feed a SILVER semifinal/final/third-place bracket
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

from league_scheduler.services.round_robin import unique_participants
from league_scheduler.services.scheduling_errors import (
    INVALID_BRACKET_SIZE,
    NOT_ENOUGH_PAIRS,
    PLAYOFFS_BRACKET_OVERFLOW,
    SchedulingError,
)
from league_scheduler.services.seeding import (
    RngLike,
    generate_seed_order,
    highest_power_of_two,
    is_power_of_two,
    shuffle_numbers,
)
from league_scheduler.services.series_rules import validate_best_of

logger = logging.getLogger(__name__)

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"


class BracketType(str, Enum):
    MAIN = "MAIN"
    QUALIFICATION = "QUALIFICATION"
    GOLD = "GOLD"
    SILVER = "SILVER"


# -----------------------------------------------------------------------------
# Stage names
# -----------------------------------------------------------------------------

STAGE_FINAL = "Final"
STAGE_SEMI_FINAL = "Semifinal"
STAGE_QUARTER_FINAL = "Quarterfinal"
STAGE_QUALIFICATION = "Qualification"

CUP_STAGE_NAMES = {
    "SEMI_FINAL_GOLD": "Gold Cup Semifinal",
    "SEMI_FINAL_SILVER": "Silver Cup Semifinal",
    "FINAL_GOLD": "Gold Cup Final",
    "FINAL_SILVER": "Silver Cup Final",
    "THIRD_PLACE_GOLD": "Gold Cup Third Place",
    "THIRD_PLACE_SILVER": "Silver Cup Third Place",
}

# Bracket rounds at or below this many teams take part in the gold/silver split
CONSOLATION_SPLIT_TEAMS = 8


def stage_name_for_teams(remaining_teams: int) -> str:
    """
    Stage label for a round with `remaining_teams` teams still in it.

      2 -> Final, 4 -> Semifinal, 8 -> Quarterfinal, 16+ -> "Round of N"
      any count that is not a power of two -> Qualification
    """
    if remaining_teams < 2 or not is_power_of_two(remaining_teams):
        return STAGE_QUALIFICATION
    if remaining_teams == 2:
        return STAGE_FINAL
    if remaining_teams == 4:
        return STAGE_SEMI_FINAL
    if remaining_teams == 8:
        return STAGE_QUARTER_FINAL
    return f"Round of {remaining_teams}"


# -----------------------------------------------------------------------------
# Data Models
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class BracketSide:
    participant: Optional[Hashable] = None
    seed: Optional[int] = None
    source_index: Optional[int] = None  # feeder node in the arena
    source_role: Optional[str] = None   # "WINNER" | "LOSER"
    absent: bool = False


ABSENT = BracketSide(absent=True)


@dataclass(frozen=True)
class BracketNode:
    index: int
    code: str
    stage_name: str
    bracket_type: BracketType
    round_number: int
    slot: int  # 1-based within (round_number, bracket_type)
    teams_remaining: int
    side_a: BracketSide
    side_b: BracketSide
    is_third_place: bool = False

    @property
    def is_void(self) -> bool:
        return self.side_a.absent and self.side_b.absent

    @property
    def is_bye(self) -> bool:
        return self.side_a.absent != self.side_b.absent

    @property
    def is_playable(self) -> bool:
        return not self.side_a.absent and not self.side_b.absent

    def present_side(self) -> Optional[BracketSide]:
        """The side that advances through a bye."""
        if not self.is_bye:
            return None
        return self.side_b if self.side_a.absent else self.side_a


@dataclass(frozen=True)
class PlayoffPlan:
    nodes: Tuple[BracketNode, ...]
    bracket_size: int
    participant_count: int
    best_of: int
    seeds: Tuple[Tuple[Hashable, int], ...]  # (participant, seed) best first
    has_qualification: bool = False
    has_consolation: bool = False
    qualification_two_legged: bool = False

    @property
    def round_numbers(self) -> List[int]:
        return sorted({n.round_number for n in self.nodes})

    def nodes_in_round(self, round_number: int) -> List[BracketNode]:
        return [n for n in self.nodes if n.round_number == round_number]

    def nodes_of_type(self, bracket_type: BracketType) -> List[BracketNode]:
        return [n for n in self.nodes if n.bracket_type == bracket_type]

    @property
    def bye_nodes(self) -> List[BracketNode]:
        return [n for n in self.nodes if n.is_bye]

    @property
    def bye_seeds(self) -> List[int]:
        """Seeds that skip the first main round, best first."""
        first_main = self.first_main_round
        seeds = []
        for n in self.nodes_in_round(first_main):
            side = n.present_side()
            if side is not None and side.seed is not None:
                seeds.append(side.seed)
        return sorted(seeds)

    @property
    def first_main_round(self) -> int:
        return 2 if self.has_qualification else 1

    def main_stage_sequence(self) -> List[str]:
        """Stage names of the elimination path, one per round, first round first."""
        names: List[str] = []
        for r in self.round_numbers:
            for n in self.nodes_in_round(r):
                if n.bracket_type in (BracketType.MAIN, BracketType.GOLD) and not n.is_third_place:
                    names.append(n.stage_name)
                    break
        return names

    def side_label(self, side: BracketSide) -> str:
        """Display text for a side: participant id, feeder reference or BYE."""
        if side.absent:
            return "BYE"
        if side.participant is not None:
            return str(side.participant)
        if side.source_index is not None:
            feeder = self.nodes[side.source_index]
            return f"{(side.source_role or ROLE_WINNER).title()} of {feeder.code}"
        return "TBD"


# -----------------------------------------------------------------------------
# Arena helpers
# -----------------------------------------------------------------------------

def _node_code(bracket_type: BracketType, round_number: int, slot: int) -> str:
    return f"{bracket_type.value}-R{round_number}-{slot}"


def _advance(node: BracketNode, role: str) -> BracketSide:
    """Side fed into a later node by `node`'s winner or loser."""
    if node.is_void:
        return ABSENT
    if role == ROLE_LOSER:
        return ABSENT if node.is_bye else BracketSide(source_index=node.index, source_role=ROLE_LOSER)
    if node.is_bye:
        present = node.present_side()
        if present.participant is None:
            # Still waiting on its own feeder; keep pointing there
            return present
        return replace(present, source_index=node.index, source_role=ROLE_WINNER)
    return BracketSide(source_index=node.index, source_role=ROLE_WINNER)


class _Arena:
    """Append-only node list; indices are stable once assigned."""

    def __init__(self):
        self.nodes: List[BracketNode] = []

    def add(
        self,
        *,
        stage_name: str,
        bracket_type: BracketType,
        round_number: int,
        slot: int,
        teams_remaining: int,
        side_a: BracketSide,
        side_b: BracketSide,
        is_third_place: bool = False,
    ) -> BracketNode:
        node = BracketNode(
            index=len(self.nodes),
            code=_node_code(bracket_type, round_number, slot),
            stage_name=stage_name,
            bracket_type=bracket_type,
            round_number=round_number,
            slot=slot,
            teams_remaining=teams_remaining,
            side_a=side_a,
            side_b=side_b,
            is_third_place=is_third_place,
        )
        self.nodes.append(node)
        return node


# -----------------------------------------------------------------------------
# Tree construction
# -----------------------------------------------------------------------------

def _build_qualification(
    arena: _Arena,
    entries: Sequence[Tuple[Hashable, int]],
    main_bracket_size: int,
) -> Dict[int, BracketSide]:
    """
    Pair the lowest 2q seeds (best vs worst among them) where
    q = len(entries) - main_bracket_size. Returns the main-bracket side for
    each seed slot filled by a qualification winner; the winner takes the
    better seed of its pair.
    """
    q = len(entries) - main_bracket_size
    pool = list(entries[main_bracket_size - q:])
    sides: Dict[int, BracketSide] = {}

    for i in range(q):
        (top_id, top_seed), (low_id, low_seed) = pool[i], pool[len(pool) - 1 - i]
        node = arena.add(
            stage_name=STAGE_QUALIFICATION,
            bracket_type=BracketType.QUALIFICATION,
            round_number=1,
            slot=i + 1,
            teams_remaining=len(entries),
            side_a=BracketSide(participant=top_id, seed=top_seed),
            side_b=BracketSide(participant=low_id, seed=low_seed),
        )
        sides[top_seed] = replace(_advance(node, ROLE_WINNER), seed=top_seed)

    return sides


def _build_elimination_tree(
    arena: _Arena,
    seat_by_seed: Dict[int, BracketSide],
    bracket_size: int,
    first_round: int,
) -> None:
    """Lay out round one by seed order, then pair consecutive winners up to the final."""
    order = generate_seed_order(bracket_size)
    current: List[BracketNode] = []
    for k in range(bracket_size // 2):
        seed_a, seed_b = order[2 * k], order[2 * k + 1]
        current.append(arena.add(
            stage_name=stage_name_for_teams(bracket_size),
            bracket_type=BracketType.MAIN,
            round_number=first_round,
            slot=k + 1,
            teams_remaining=bracket_size,
            side_a=seat_by_seed.get(seed_a, ABSENT),
            side_b=seat_by_seed.get(seed_b, ABSENT),
        ))

    round_number = first_round
    teams = bracket_size // 2
    while len(current) > 1:
        round_number += 1
        nxt: List[BracketNode] = []
        for k in range(len(current) // 2):
            left, right = current[2 * k], current[2 * k + 1]
            nxt.append(arena.add(
                stage_name=stage_name_for_teams(teams),
                bracket_type=BracketType.MAIN,
                round_number=round_number,
                slot=k + 1,
                teams_remaining=teams,
                side_a=_advance(left, ROLE_WINNER),
                side_b=_advance(right, ROLE_WINNER),
            ))
        current = nxt
        teams //= 2


def _split_gold_silver(arena: _Arena) -> bool:
    """
    Post-process a finished single-elimination tree into gold/silver cups.

    Quarterfinal and later main nodes are retagged GOLD (semifinal and final
    get cup labels). Quarterfinal losers feed two SILVER semifinals; each cup
    gets a final (already present for gold) and a third-place decider.
    Returns False when the tree has no quarterfinal round.
    """
    by_teams: Dict[int, List[BracketNode]] = {}
    for n in arena.nodes:
        if n.bracket_type == BracketType.MAIN:
            by_teams.setdefault(n.teams_remaining, []).append(n)

    quarter = sorted(by_teams.get(CONSOLATION_SPLIT_TEAMS, []), key=lambda n: n.slot)
    semis = sorted(by_teams.get(4, []), key=lambda n: n.slot)
    finals = by_teams.get(2, [])
    if len(quarter) != 4 or len(semis) != 2 or len(finals) != 1:
        return False

    relabel = {4: CUP_STAGE_NAMES["SEMI_FINAL_GOLD"], 2: CUP_STAGE_NAMES["FINAL_GOLD"]}
    for i, n in enumerate(arena.nodes):
        if n.bracket_type == BracketType.MAIN and n.teams_remaining <= CONSOLATION_SPLIT_TEAMS:
            arena.nodes[i] = replace(
                n,
                bracket_type=BracketType.GOLD,
                code=_node_code(BracketType.GOLD, n.round_number, n.slot),
                stage_name=relabel.get(n.teams_remaining, n.stage_name),
            )

    gold_semis = [arena.nodes[n.index] for n in semis]
    final = arena.nodes[finals[0].index]

    arena.add(
        stage_name=CUP_STAGE_NAMES["THIRD_PLACE_GOLD"],
        bracket_type=BracketType.GOLD,
        round_number=final.round_number,
        slot=2,
        teams_remaining=2,
        side_a=_advance(gold_semis[0], ROLE_LOSER),
        side_b=_advance(gold_semis[1], ROLE_LOSER),
        is_third_place=True,
    )

    quarter = [arena.nodes[n.index] for n in quarter]
    silver_semis = []
    for k in range(2):
        silver_semis.append(arena.add(
            stage_name=CUP_STAGE_NAMES["SEMI_FINAL_SILVER"],
            bracket_type=BracketType.SILVER,
            round_number=gold_semis[0].round_number,
            slot=k + 1,
            teams_remaining=4,
            side_a=_advance(quarter[2 * k], ROLE_LOSER),
            side_b=_advance(quarter[2 * k + 1], ROLE_LOSER),
        ))

    arena.add(
        stage_name=CUP_STAGE_NAMES["FINAL_SILVER"],
        bracket_type=BracketType.SILVER,
        round_number=final.round_number,
        slot=1,
        teams_remaining=2,
        side_a=_advance(silver_semis[0], ROLE_WINNER),
        side_b=_advance(silver_semis[1], ROLE_WINNER),
    )
    arena.add(
        stage_name=CUP_STAGE_NAMES["THIRD_PLACE_SILVER"],
        bracket_type=BracketType.SILVER,
        round_number=final.round_number,
        slot=2,
        teams_remaining=2,
        side_a=_advance(silver_semis[0], ROLE_LOSER),
        side_b=_advance(silver_semis[1], ROLE_LOSER),
        is_third_place=True,
    )
    return True


# -----------------------------------------------------------------------------
# Public entry points
# -----------------------------------------------------------------------------

def create_initial_playoff_plans(
    ranked_participants: Sequence[Hashable],
    best_of: int = 1,
    main_bracket_size: Optional[int] = None,
    consolation: bool = False,
    qualification_two_legged: bool = False,
) -> PlayoffPlan:
    """
    Build a seeded bracket. Position in `ranked_participants` is the seed
    (index 0 = seed 1).

    Without main_bracket_size the bracket is the smallest power of two that
    fits the field and the best seeds receive the byes. With it, a field
    larger than the main bracket first plays a qualification round.

    Raises:
        SchedulingError: not_enough_pairs, invalid_series_length,
            invalid_bracket_size, playoffs_bracket_overflow
    """
    validate_best_of(best_of)
    participants = unique_participants(ranked_participants)
    n = len(participants)
    if n < 2:
        raise SchedulingError(NOT_ENOUGH_PAIRS, f"playoffs need 2 participants, got {n}")

    if main_bracket_size is not None:
        if main_bracket_size < 2 or not is_power_of_two(main_bracket_size):
            raise SchedulingError(
                INVALID_BRACKET_SIZE, f"main bracket size must be a power of two >= 2, got {main_bracket_size}"
            )
        if n > 2 * main_bracket_size:
            raise SchedulingError(
                PLAYOFFS_BRACKET_OVERFLOW,
                f"{n} participants cannot fit a {main_bracket_size}-team bracket with one qualification round",
            )

    entries = [(pid, i + 1) for i, pid in enumerate(participants)]
    arena = _Arena()

    has_qualification = main_bracket_size is not None and n > main_bracket_size
    if has_qualification:
        bracket_size = main_bracket_size
        seat_by_seed = _build_qualification(arena, entries, main_bracket_size)
        q = n - main_bracket_size
        for pid, seed in entries[: main_bracket_size - q]:
            seat_by_seed[seed] = BracketSide(participant=pid, seed=seed)
        first_round = 2
    else:
        bracket_size = highest_power_of_two(n)
        seat_by_seed = {seed: BracketSide(participant=pid, seed=seed) for pid, seed in entries}
        first_round = 1

    _build_elimination_tree(arena, seat_by_seed, bracket_size, first_round)

    has_consolation = _split_gold_silver(arena) if consolation else False

    plan = PlayoffPlan(
        nodes=tuple(arena.nodes),
        bracket_size=bracket_size,
        participant_count=n,
        best_of=best_of,
        seeds=tuple(entries),
        has_qualification=has_qualification,
        has_consolation=has_consolation,
        qualification_two_legged=qualification_two_legged and has_qualification,
    )
    logger.debug(
        "playoff plan: participants=%s bracket=%s byes=%s qualification=%s consolation=%s nodes=%s",
        n,
        bracket_size,
        len(plan.bye_seeds),
        has_qualification,
        has_consolation,
        len(plan.nodes),
    )
    return plan


def create_random_playoff_plans(
    participants: Sequence[Hashable],
    best_of: int,
    rng_seed: RngLike,
    main_bracket_size: Optional[int] = None,
    consolation: bool = False,
    qualification_two_legged: bool = False,
) -> PlayoffPlan:
    """
    Same bracket as create_initial_playoff_plans, with seed ranks drawn by
    shuffle_numbers instead of supplied by the caller. The same rng_seed
    always yields the same bracket.
    """
    unique = unique_participants(participants)
    ranks = shuffle_numbers(list(range(1, len(unique) + 1)), rng_seed)
    rank_of = dict(zip(unique, ranks))
    ordered = sorted(unique, key=lambda pid: rank_of[pid])
    return create_initial_playoff_plans(
        ordered,
        best_of=best_of,
        main_bracket_size=main_bracket_size,
        consolation=consolation,
        qualification_two_legged=qualification_two_legged,
    )
