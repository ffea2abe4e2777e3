"""
Group stage partitioning.

Validates an explicit slot assignment (club -> group, position) against the
club list and returns the groups ordered by index, each with its clubs
ordered by slot position. Validation runs to completion before any group is
built, so a failing config never yields a partial partition.
"""

import logging
import string
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Sequence

from league_scheduler.services.scheduling_errors import (
    GROUP_STAGE_COUNT_MISMATCH,
    GROUP_STAGE_DUPLICATE_CLUB,
    GROUP_STAGE_DUPLICATE_INDEX,
    GROUP_STAGE_DUPLICATE_SLOT_POSITION,
    GROUP_STAGE_INCOMPLETE,
    GROUP_STAGE_INVALID_COUNT,
    GROUP_STAGE_INVALID_SIZE,
    GROUP_STAGE_INVALID_SLOT_POSITION,
    NOT_ENOUGH_PAIRS,
    SchedulingError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupSlot:
    club_id: Hashable
    position: int  # 1..group_size


@dataclass(frozen=True)
class GroupDefinition:
    group_index: int  # 1..group_count
    slots: Sequence[GroupSlot]
    label: Optional[str] = None
    qualify_count: Optional[int] = None  # falls back to the stage-wide value


@dataclass(frozen=True)
class GroupStageConfig:
    group_count: int
    group_size: int
    qualify_count: int
    groups: Sequence[GroupDefinition] = field(default_factory=tuple)
    allow_byes: bool = False  # groups may hold fewer clubs than group_size


@dataclass(frozen=True)
class Group:
    group_index: int
    label: str
    qualify_count: int
    club_ids: List[Hashable]


def default_group_label(group_index: int) -> str:
    """1 -> "Group A", 2 -> "Group B", ... past Z the index is used."""
    letters = string.ascii_uppercase
    if 1 <= group_index <= len(letters):
        return f"Group {letters[group_index - 1]}"
    return f"Group {group_index}"


def _fail(code: str, message: str) -> SchedulingError:
    logger.debug("group stage rejected: %s (%s)", code, message)
    return SchedulingError(code, message)


def build_groups(group_stage: GroupStageConfig, club_ids: Sequence[Hashable]) -> List[Group]:
    """
    Validate `group_stage` against `club_ids` and return the groups.

    Raises:
        SchedulingError: a group_stage_* code for the first violated rule, or
            not_enough_pairs when a valid group holds fewer than 2 clubs
    """
    if group_stage.group_count < 1:
        raise _fail(GROUP_STAGE_INVALID_COUNT, f"group count must be >= 1, got {group_stage.group_count}")

    size = group_stage.group_size
    if size < 2:
        raise _fail(GROUP_STAGE_INVALID_SIZE, f"group size must be >= 2, got {size}")
    qualify_counts = [group_stage.qualify_count] + [
        g.qualify_count for g in group_stage.groups if g.qualify_count is not None
    ]
    for qualify in qualify_counts:
        if qualify < 0 or qualify > size:
            raise _fail(GROUP_STAGE_INVALID_SIZE, f"qualify count {qualify} outside 0..{size}")

    if len(group_stage.groups) != group_stage.group_count:
        raise _fail(
            GROUP_STAGE_COUNT_MISMATCH,
            f"expected {group_stage.group_count} groups, got {len(group_stage.groups)}",
        )

    seen_index = set()
    for g in group_stage.groups:
        if g.group_index in seen_index or not 1 <= g.group_index <= group_stage.group_count:
            raise _fail(GROUP_STAGE_DUPLICATE_INDEX, f"bad or repeated group index {g.group_index}")
        seen_index.add(g.group_index)

    for g in group_stage.groups:
        for slot in g.slots:
            if not 1 <= slot.position <= size:
                raise _fail(
                    GROUP_STAGE_INVALID_SLOT_POSITION,
                    f"group {g.group_index}: position {slot.position} outside 1..{size}",
                )

    for g in group_stage.groups:
        positions = [slot.position for slot in g.slots]
        if len(set(positions)) != len(positions):
            raise _fail(GROUP_STAGE_DUPLICATE_SLOT_POSITION, f"group {g.group_index}: repeated slot position")

    owner: Dict[Hashable, int] = {}
    for g in group_stage.groups:
        for slot in g.slots:
            if slot.club_id in owner:
                raise _fail(
                    GROUP_STAGE_DUPLICATE_CLUB,
                    f"club {slot.club_id} placed in groups {owner[slot.club_id]} and {g.group_index}",
                )
            owner[slot.club_id] = g.group_index

    if not group_stage.allow_byes:
        for g in group_stage.groups:
            if len(g.slots) != size:
                raise _fail(
                    GROUP_STAGE_INCOMPLETE,
                    f"group {g.group_index} has {len(g.slots)} clubs, expected {size}",
                )
    if set(owner) != set(club_ids):
        missing = sorted(str(c) for c in set(club_ids) - set(owner))
        extra = sorted(str(c) for c in set(owner) - set(club_ids))
        raise _fail(GROUP_STAGE_INCOMPLETE, f"group clubs differ from club list: missing={missing} extra={extra}")

    groups: List[Group] = []
    for g in sorted(group_stage.groups, key=lambda d: d.group_index):
        ordered = [slot.club_id for slot in sorted(g.slots, key=lambda s: s.position)]
        if len(ordered) < 2:
            raise SchedulingError(NOT_ENOUGH_PAIRS, f"group {g.group_index} has {len(ordered)} club(s)")
        groups.append(Group(
            group_index=g.group_index,
            label=g.label or default_group_label(g.group_index),
            qualify_count=g.qualify_count if g.qualify_count is not None else group_stage.qualify_count,
            club_ids=ordered,
        ))

    return groups
