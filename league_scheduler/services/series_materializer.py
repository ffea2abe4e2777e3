"""
Series & Fixture Materializer — turns pairings and bracket nodes into dated matches.

Placement rules:
- Week slots advance one week at a time from the first match day on or after
  the season start. A pairing's series occupies consecutive weeks.
- Matches of the same round share a match day; the k-th match of the day is
  pushed back by (k - 1) * slot_interval_minutes.
- Byes never produce a match and a round made only of byes uses no week.
- Odd-numbered games of a series are hosted by side A (home / better seed),
  even-numbered games by side B.
"""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Dict, Hashable, Iterable, List, Optional

from league_scheduler.services.playoff_plan import BracketNode, BracketType, PlayoffPlan
from league_scheduler.services.round_robin import RoundRobinPair
from league_scheduler.services.scheduling_errors import INVALID_SERIES_LENGTH, SchedulingError
from league_scheduler.services.series_rules import MatchSeries, SeriesKind
from league_scheduler.utils.calendar_math import (
    add_minutes,
    first_match_day,
    league_timezone,
    week_kickoff,
)

ROUND_TYPE_REGULAR = "REGULAR"
ROUND_TYPE_PLAYOFF = "PLAYOFF"

REGULAR_STAGE_NAME = "Regular Season"
GROUP_STAGE_NAME = "Group Stage"

# Kickoff order within a playoff match day
_BRACKET_ORDER = {
    BracketType.QUALIFICATION: 0,
    BracketType.MAIN: 1,
    BracketType.GOLD: 2,
    BracketType.SILVER: 3,
}


@dataclass(frozen=True)
class ScheduledMatch:
    series_key: str  # code of the owning pairing / bracket node
    round_type: str  # "REGULAR" | "PLAYOFF"
    round_number: int
    stage_name: str
    kickoff: datetime
    series_match_number: int  # 1..series_length
    series_length: int
    home_club_id: Optional[Hashable]
    away_club_id: Optional[Hashable]
    home_placeholder: str
    away_placeholder: str
    group_index: Optional[int] = None
    bracket_type: Optional[BracketType] = None
    node_index: Optional[int] = None

    @property
    def has_known_teams(self) -> bool:
        return self.home_club_id is not None and self.away_club_id is not None


@dataclass(frozen=True)
class FixtureCalendar:
    """Where week slots fall: first match day, kickoff time, zone and stagger."""

    first_day: date
    hours: int
    minutes: int
    tz: tzinfo
    slot_interval_minutes: int = 0

    @classmethod
    def from_start(
        cls,
        start: date,
        match_day_of_week: int,
        hours: int,
        minutes: int,
        tz: Optional[tzinfo] = None,
        slot_interval_minutes: int = 0,
    ) -> "FixtureCalendar":
        return cls(
            first_day=first_match_day(start, match_day_of_week),
            hours=hours,
            minutes=minutes,
            tz=tz or league_timezone(),
            slot_interval_minutes=max(0, slot_interval_minutes),
        )

    def kickoff(self, week_offset: int, slot_index: int = 0) -> datetime:
        base = week_kickoff(self.first_day, week_offset, self.hours, self.minutes, self.tz)
        return add_minutes(base, slot_index * self.slot_interval_minutes)


def materialize_series(
    *,
    series_key: str,
    series: MatchSeries,
    calendar: FixtureCalendar,
    week_offset: int,
    slot_index: int,
    round_type: str,
    round_number: int,
    stage_name: str,
    side_a: Optional[Hashable],
    side_b: Optional[Hashable],
    placeholder_a: str,
    placeholder_b: str,
    group_index: Optional[int] = None,
    bracket_type: Optional[BracketType] = None,
    node_index: Optional[int] = None,
) -> List[ScheduledMatch]:
    """One pairing -> series.length matches numbered 1..N on consecutive weeks."""
    matches: List[ScheduledMatch] = []
    for game in range(1, series.length + 1):
        a_hosts = game % 2 == 1
        matches.append(ScheduledMatch(
            series_key=series_key,
            round_type=round_type,
            round_number=round_number,
            stage_name=stage_name,
            kickoff=calendar.kickoff(week_offset + game - 1, slot_index),
            series_match_number=game,
            series_length=series.length,
            home_club_id=side_a if a_hosts else side_b,
            away_club_id=side_b if a_hosts else side_a,
            home_placeholder=placeholder_a if a_hosts else placeholder_b,
            away_placeholder=placeholder_b if a_hosts else placeholder_a,
            group_index=group_index,
            bracket_type=bracket_type,
            node_index=node_index,
        ))
    return matches


# =============================================================================
# Round robin
# =============================================================================

def materialize_round_robin(
    pairs_by_group: Dict[Optional[int], Iterable[RoundRobinPair]],
    calendar: FixtureCalendar,
    series: Optional[MatchSeries] = None,
    week_offset: int = 0,
) -> List[ScheduledMatch]:
    """
    Dated matches for one or more round robins played side by side.

    pairs_by_group maps group index (None for a league without groups) to its
    pairings. Round R of every group is played on the same week slot.
    """
    series = series or MatchSeries.single()
    if series.kind == SeriesKind.TWO_LEGGED and None in pairs_by_group:
        raise SchedulingError(INVALID_SERIES_LENGTH, "two-legged series are limited to group and qualification rounds")

    by_round: Dict[int, List[tuple]] = {}
    for group_index in sorted(pairs_by_group, key=lambda g: (g is not None, g or 0)):
        for pair in pairs_by_group[group_index]:
            if pair.is_bye:
                continue
            by_round.setdefault(pair.round_number, []).append((group_index, pair))

    matches: List[ScheduledMatch] = []
    week = week_offset
    for round_number in sorted(by_round):
        for slot_index, (group_index, pair) in enumerate(by_round[round_number]):
            prefix = f"G{group_index}-" if group_index is not None else ""
            matches.extend(materialize_series(
                series_key=f"{prefix}RR-R{round_number}-{pair.sequence_in_round}",
                series=series,
                calendar=calendar,
                week_offset=week,
                slot_index=slot_index,
                round_type=ROUND_TYPE_REGULAR,
                round_number=round_number,
                stage_name=GROUP_STAGE_NAME if group_index is not None else REGULAR_STAGE_NAME,
                side_a=pair.home,
                side_b=pair.away,
                placeholder_a=str(pair.home),
                placeholder_b=str(pair.away),
                group_index=group_index,
            ))
        week += series.length

    return matches


# =============================================================================
# Brackets
# =============================================================================

def series_for_node(plan: PlayoffPlan, node: BracketNode) -> MatchSeries:
    if node.bracket_type == BracketType.QUALIFICATION and plan.qualification_two_legged:
        return MatchSeries.two_legged()
    return MatchSeries.best_of(plan.best_of)


def materialize_bracket(
    plan: PlayoffPlan,
    calendar: FixtureCalendar,
    week_offset: int = 0,
) -> List[ScheduledMatch]:
    """
    Dated matches for every playable node of the bracket.

    Sides that depend on an unfinished feeder carry a placeholder
    ("Winner of MAIN-R1-2") and no club id. Round r starts the week after
    the longest series of the previous round would end.
    """
    matches: List[ScheduledMatch] = []
    week = week_offset
    for round_number in plan.round_numbers:
        playable = [n for n in plan.nodes_in_round(round_number) if n.is_playable]
        if not playable:
            continue
        playable.sort(key=lambda n: (_BRACKET_ORDER[n.bracket_type], n.is_third_place, n.slot))

        longest = 0
        for slot_index, node in enumerate(playable):
            series = series_for_node(plan, node)
            longest = max(longest, series.length)
            matches.extend(materialize_series(
                series_key=node.code,
                series=series,
                calendar=calendar,
                week_offset=week,
                slot_index=slot_index,
                round_type=ROUND_TYPE_PLAYOFF,
                round_number=round_number,
                stage_name=node.stage_name,
                side_a=node.side_a.participant,
                side_b=node.side_b.participant,
                placeholder_a=plan.side_label(node.side_a),
                placeholder_b=plan.side_label(node.side_b),
                bracket_type=node.bracket_type,
                node_index=node.index,
            ))
        week += longest

    return matches


def weeks_used(matches: Iterable[ScheduledMatch], calendar: FixtureCalendar) -> int:
    """Week slots from the first match day through the last kickoff (0 when empty)."""
    days = [m.kickoff.date() for m in matches]
    if not days:
        return 0
    return (max(days) - calendar.first_day).days // 7 + 1
