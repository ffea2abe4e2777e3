"""
Group Seeding - playoff ranking built from group-stage placements

Turns (group, placement) entries into the ranked list the playoff builder
seeds from, arranged so that no first playoff game (qualification or main
bracket) puts two clubs from the same group against each other.

Group winners always rank ahead of runners-up, runners-up ahead of thirds,
and so on. Only the order inside one placement tier is rearranged:
- layouts with a fixed cup scheme (CUP_LAYOUTS) use that scheme
- every other layout is searched tier by tier, preferring group order
"""

import logging
from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional, Sequence, Set, Tuple

from league_scheduler.services.scheduling_errors import GROUP_STANDINGS_INVALID, SchedulingError
from league_scheduler.services.seeding import generate_seed_order, highest_power_of_two, is_power_of_two

logger = logging.getLogger(__name__)

# Backtracking steps before the search gives up and keeps the plain tier order
SEARCH_BUDGET = 50000


@dataclass(frozen=True)
class GroupPlacement:
    participant: Hashable
    group_index: int
    placement: int  # 1 = group winner


@dataclass(frozen=True)
class CupLayout:
    main_bracket_size: int
    order: Tuple[Tuple[int, int], ...]  # (group ordinal, placement) per seed, seed 1 first


# (group count, clubs advancing per group) -> fixed scheme.
# 4 x 3: group winners wait in the quarterfinal while the runners-up and
# thirds play C2-B3, B2-C3, D2-A3, A2-D3; A1 meets the C2/B3 winner.
CUP_LAYOUTS: Dict[Tuple[int, int], CupLayout] = {
    (4, 3): CupLayout(
        main_bracket_size=8,
        order=(
            (1, 1), (2, 1), (3, 1), (4, 1),
            (2, 2), (4, 2), (1, 2), (3, 2),
            (2, 3), (4, 3), (1, 3), (3, 3),
        ),
    ),
}


def _validate(placements: Sequence[GroupPlacement]) -> None:
    clubs = set()
    slots = set()
    by_group: Dict[int, List[int]] = {}
    for entry in placements:
        if entry.placement < 1:
            raise SchedulingError(GROUP_STANDINGS_INVALID, f"placement must be >= 1, got {entry.placement}")
        if entry.participant in clubs:
            raise SchedulingError(GROUP_STANDINGS_INVALID, f"club {entry.participant} placed twice")
        if (entry.group_index, entry.placement) in slots:
            raise SchedulingError(
                GROUP_STANDINGS_INVALID,
                f"group {entry.group_index} has two clubs in place {entry.placement}",
            )
        clubs.add(entry.participant)
        slots.add((entry.group_index, entry.placement))
        by_group.setdefault(entry.group_index, []).append(entry.placement)

    for group_index, ranks in by_group.items():
        if sorted(ranks) != list(range(1, len(ranks) + 1)):
            raise SchedulingError(
                GROUP_STANDINGS_INVALID,
                f"group {group_index} placements must run 1..{len(ranks)} without gaps",
            )


def first_round_opponents(n: int, main_bracket_size: Optional[int] = None) -> Dict[int, Set[int]]:
    """
    Seed -> seeds it can meet in its first playoff game.

    Mirrors the bracket create_initial_playoff_plans lays out for a field of
    n: a seed waiting on a qualification winner can meet either club of that
    qualification pair. Byes add nothing. Sizes the builder rejects return
    an empty map for every seed.
    """
    opponents: Dict[int, Set[int]] = {s: set() for s in range(1, n + 1)}

    def link(feed_a: Tuple[int, ...], feed_b: Tuple[int, ...]) -> None:
        for a in feed_a:
            for b in feed_b:
                opponents[a].add(b)
                opponents[b].add(a)

    if main_bracket_size is not None and n > main_bracket_size:
        if not is_power_of_two(main_bracket_size) or n > 2 * main_bracket_size:
            return opponents
        bracket_size = main_bracket_size
        q = n - main_bracket_size
        feeds = {s: (s,) for s in range(1, bracket_size + 1)}
        for i in range(q):
            top, low = bracket_size - q + 1 + i, n - i
            link((top,), (low,))
            feeds[top] = (top, low)
    else:
        bracket_size = highest_power_of_two(n)
        feeds = {s: (s,) for s in range(1, n + 1)}

    order = generate_seed_order(bracket_size)
    for k in range(bracket_size // 2):
        seed_a, seed_b = order[2 * k], order[2 * k + 1]
        if seed_a in feeds and seed_b in feeds:
            link(feeds[seed_a], feeds[seed_b])
    return opponents


def _arrange(
    flat: List[GroupPlacement],
    opponents: Dict[int, Set[int]],
) -> Optional[List[GroupPlacement]]:
    """Backtracking fill of seed positions; None when the budget runs out or nothing fits."""
    n = len(flat)
    by_tier: Dict[int, List[GroupPlacement]] = {}
    for entry in flat:
        by_tier.setdefault(entry.placement, []).append(entry)

    assigned: List[Optional[GroupPlacement]] = [None] * (n + 1)
    used = set()
    steps = 0

    def place(position: int) -> bool:
        nonlocal steps
        if position > n:
            return True
        for entry in by_tier[flat[position - 1].placement]:
            if entry.participant in used:
                continue
            steps += 1
            if steps > SEARCH_BUDGET:
                return False
            clash = any(
                assigned[o] is not None and assigned[o].group_index == entry.group_index
                for o in opponents[position]
            )
            if clash:
                continue
            assigned[position] = entry
            used.add(entry.participant)
            if place(position + 1):
                return True
            assigned[position] = None
            used.discard(entry.participant)
        return False

    if not place(1):
        return None
    return assigned[1:]


def _layout_for(placements: Sequence[GroupPlacement], group_count: int) -> Optional[CupLayout]:
    sizes: Dict[int, int] = {}
    for entry in placements:
        sizes[entry.group_index] = sizes.get(entry.group_index, 0) + 1
    per_group = set(sizes.values())
    if len(per_group) != 1:
        return None
    return CUP_LAYOUTS.get((group_count, per_group.pop()))


def group_seeded_ranking(
    placements: Sequence[GroupPlacement],
    main_bracket_size: Optional[int] = None,
) -> Tuple[List[Hashable], Optional[int]]:
    """
    Rank group qualifiers for the playoff builder.

    Returns (ranked participants, main bracket size). A fixed cup layout
    brings its own main bracket size when the caller gives none.

    Raises:
        SchedulingError: group_standings_invalid
    """
    entries = list(placements)
    _validate(entries)
    ordinal = {g: i for i, g in enumerate(sorted({e.group_index for e in entries}), start=1)}
    flat = sorted(entries, key=lambda e: (e.placement, ordinal[e.group_index]))

    layout = _layout_for(entries, len(ordinal))
    if layout is not None and main_bracket_size in (None, layout.main_bracket_size):
        lookup = {(ordinal[e.group_index], e.placement): e.participant for e in entries}
        return [lookup[key] for key in layout.order], layout.main_bracket_size

    arranged = _arrange(flat, first_round_opponents(len(flat), main_bracket_size))
    if arranged is None:
        logger.warning(
            "no cross-group seeding for %s clubs in %s groups, keeping tier order",
            len(flat),
            len(ordinal),
        )
        arranged = flat
    return [e.participant for e in arranged], main_bracket_size
