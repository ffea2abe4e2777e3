"""
Season Automation - regular season calendar and playoff creation

Two entry points:
1. run_season_automation: validate the config, partition groups (if any),
   pair every group / the whole league and place the fixtures on the calendar.
   PLAYOFF_BRACKET seasons have no regular season and get a random-seeded
   bracket straight away.
2. create_season_playoffs: once the caller confirms the regular season is
   finished, build the bracket for the qualified clubs and place its matches.

Both are pure: no database access, the same input always gives the same
output. Persistence lives in season_store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Hashable, List, Optional, Sequence, Tuple, Union

from league_scheduler.config import SLOT_INTERVAL_MINUTES
from league_scheduler.services.group_seeding import GroupPlacement, group_seeded_ranking
from league_scheduler.services.playoff_plan import (
    PlayoffPlan,
    create_initial_playoff_plans,
    create_random_playoff_plans,
)
from league_scheduler.services.round_robin import (
    RoundRobinPair,
    generate_round_robin_pairs,
    unique_participants,
)
from league_scheduler.services.scheduling_errors import (
    GROUP_STAGE_REQUIRED,
    GROUP_STANDINGS_INVALID,
    INVALID_ROUND_COUNT,
    MATCHES_NOT_FINISHED,
    NOT_ENOUGH_PARTICIPANTS,
    PLAYOFFS_ALREADY_EXISTS,
    PLAYOFFS_NOT_SUPPORTED,
    SchedulingError,
)
from league_scheduler.services.series_materializer import (
    FixtureCalendar,
    ScheduledMatch,
    materialize_bracket,
    materialize_round_robin,
)
from league_scheduler.services.series_rules import (
    SeriesFormat,
    regular_season_rounds,
    supports_playoffs,
    validate_best_of,
)
from league_scheduler.utils.calendar_math import league_timezone, parse_match_time
from league_scheduler.utils.group_stage import Group, GroupStageConfig, build_groups

logger = logging.getLogger(__name__)

ALLOWED_GROUP_ROUNDS = (1, 2)


# ============================================================================
# Inputs / Results
# ============================================================================


@dataclass(frozen=True)
class SeasonAutomationConfig:
    competition_id: int
    season_name: str
    start_date: date
    match_day_of_week: int  # 0=Monday .. 6=Sunday
    club_ids: Sequence[Hashable]
    series_format: SeriesFormat = SeriesFormat.SINGLE_MATCH
    match_time: Optional[str] = None  # "HH:MM", DEFAULT_MATCH_TIME when missing
    city: Optional[str] = None
    group_stage: Optional[GroupStageConfig] = None
    group_rounds: int = 1
    playoff_best_of: int = 1
    main_bracket_size: Optional[int] = None
    random_seed: int = 0
    slot_interval_minutes: Optional[int] = None
    timezone: Optional[str] = None


@dataclass(frozen=True)
class SeasonAutomationResult:
    competition_id: int
    season_name: str
    series_format: SeriesFormat
    calendar: FixtureCalendar
    matches: List[ScheduledMatch]
    groups: List[Group] = field(default_factory=list)
    pairs: List[RoundRobinPair] = field(default_factory=list)
    playoff_plan: Optional[PlayoffPlan] = None
    playoff_matches: List[ScheduledMatch] = field(default_factory=list)

    @property
    def all_matches(self) -> List[ScheduledMatch]:
        return list(self.matches) + list(self.playoff_matches)

    @property
    def round_count(self) -> int:
        return len({m.round_number for m in self.matches})


@dataclass(frozen=True)
class SeasonState:
    """What the caller knows about a stored season when asking for playoffs."""

    series_format: SeriesFormat
    season_start: date
    match_day_of_week: int
    regular_season_confirmed: bool = False
    playoffs_exist: bool = False
    match_time: Optional[str] = None
    timezone: Optional[str] = None
    playoff_best_of: int = 1
    main_bracket_size: Optional[int] = None
    last_match_date: Optional[date] = None


@dataclass(frozen=True)
class PlayoffConfig:
    best_of: Optional[int] = None  # overrides the season's playoff_best_of
    main_bracket_size: Optional[int] = None
    consolation: Optional[bool] = None  # default: on for group-stage formats
    qualification_two_legged: bool = False
    random_seeding: bool = False
    random_seed: int = 0
    start_date: Optional[date] = None
    slot_interval_minutes: Optional[int] = None


@dataclass(frozen=True)
class PlayoffCreationResult:
    season_id: int
    plan: PlayoffPlan
    matches: List[ScheduledMatch]


# ============================================================================
# Helpers
# ============================================================================


def _calendar(
    start: date,
    match_day_of_week: int,
    match_time: Optional[str],
    timezone: Optional[str],
    slot_interval_minutes: Optional[int],
) -> FixtureCalendar:
    hours, minutes = parse_match_time(match_time)
    interval = SLOT_INTERVAL_MINUTES if slot_interval_minutes is None else slot_interval_minutes
    return FixtureCalendar.from_start(
        start,
        match_day_of_week,
        hours,
        minutes,
        tz=league_timezone(timezone),
        slot_interval_minutes=interval,
    )


def _validate_config(config: SeasonAutomationConfig) -> List[Hashable]:
    clubs = unique_participants(config.club_ids)
    if len(clubs) < 2:
        raise SchedulingError(NOT_ENOUGH_PARTICIPANTS, f"a season needs 2 clubs, got {len(clubs)}")
    if config.group_rounds not in ALLOWED_GROUP_ROUNDS:
        raise SchedulingError(INVALID_ROUND_COUNT, f"group rounds must be 1 or 2, got {config.group_rounds}")
    if supports_playoffs(config.series_format):
        validate_best_of(config.playoff_best_of)
    if config.series_format == SeriesFormat.GROUP_SINGLE_ROUND_PLAYOFF and config.group_stage is None:
        raise SchedulingError(GROUP_STAGE_REQUIRED, "group format needs a group stage definition")
    return clubs


# ============================================================================
# Entry points
# ============================================================================


def run_season_automation(config: SeasonAutomationConfig) -> SeasonAutomationResult:
    """
    Build the regular-season calendar for a new season.

    Returns every regular-season ScheduledMatch plus the groups (if any).
    Playoff matches are only part of the result for PLAYOFF_BRACKET seasons;
    the other playoff formats get their bracket from create_season_playoffs.

    Raises:
        SchedulingError: not_enough_participants, invalid_round_count,
            invalid_series_length, group_stage_required, group_stage_*,
            not_enough_pairs, playoff builder codes
    """
    clubs = _validate_config(config)
    calendar = _calendar(
        config.start_date,
        config.match_day_of_week,
        config.match_time,
        config.timezone,
        config.slot_interval_minutes,
    )

    if config.series_format == SeriesFormat.PLAYOFF_BRACKET:
        plan = create_random_playoff_plans(
            clubs,
            best_of=config.playoff_best_of,
            rng_seed=config.random_seed,
            main_bracket_size=config.main_bracket_size,
        )
        playoff_matches = materialize_bracket(plan, calendar)
        logger.info(
            "season automation: competition=%s season=%r format=%s clubs=%s bracket=%s playoff_matches=%s",
            config.competition_id,
            config.season_name,
            config.series_format.value,
            len(clubs),
            plan.bracket_size,
            len(playoff_matches),
        )
        return SeasonAutomationResult(
            competition_id=config.competition_id,
            season_name=config.season_name,
            series_format=config.series_format,
            calendar=calendar,
            matches=[],
            playoff_plan=plan,
            playoff_matches=playoff_matches,
        )

    groups: List[Group] = []
    if config.group_stage is not None:
        groups = build_groups(config.group_stage, clubs)
        pairs_by_group = {g.group_index: generate_round_robin_pairs(g.club_ids, config.group_rounds) for g in groups}
    else:
        pairs_by_group = {None: generate_round_robin_pairs(clubs, regular_season_rounds(config.series_format))}

    matches = materialize_round_robin(pairs_by_group, calendar)
    all_pairs = [p for key in pairs_by_group for p in pairs_by_group[key]]

    logger.info(
        "season automation: competition=%s season=%r format=%s clubs=%s groups=%s matches=%s",
        config.competition_id,
        config.season_name,
        config.series_format.value,
        len(clubs),
        len(groups),
        len(matches),
    )
    return SeasonAutomationResult(
        competition_id=config.competition_id,
        season_name=config.season_name,
        series_format=config.series_format,
        calendar=calendar,
        matches=matches,
        groups=groups,
        pairs=all_pairs,
    )


def ensure_playoffs_allowed(season_id: int, state: SeasonState) -> None:
    """
    Raises:
        SchedulingError: playoffs_not_supported, playoffs_already_exists,
            matches_not_finished (checked in that order)
    """
    if not supports_playoffs(state.series_format):
        raise SchedulingError(PLAYOFFS_NOT_SUPPORTED, f"format {state.series_format.value} has no playoffs")
    if state.playoffs_exist:
        raise SchedulingError(PLAYOFFS_ALREADY_EXISTS, f"season {season_id} already has playoffs")
    if not state.regular_season_confirmed:
        raise SchedulingError(MATCHES_NOT_FINISHED, f"season {season_id} regular season is not confirmed")


def _ranked_field(
    qualified_participants: Sequence[Union[Hashable, GroupPlacement]],
    random_seeding: bool,
    main_size: Optional[int],
) -> Tuple[List[Hashable], Optional[int]]:
    entries = list(qualified_participants)
    placed = [e for e in entries if isinstance(e, GroupPlacement)]
    if not placed:
        return entries, main_size
    if len(placed) != len(entries):
        raise SchedulingError(GROUP_STANDINGS_INVALID, "mix of group placements and plain club ids")
    if random_seeding:
        return [e.participant for e in sorted(placed, key=lambda e: (e.placement, e.group_index))], main_size
    return group_seeded_ranking(placed, main_size)


def create_season_playoffs(
    season_id: int,
    qualified_participants: Sequence[Union[Hashable, GroupPlacement]],
    config: Optional[PlayoffConfig],
    state: SeasonState,
) -> PlayoffCreationResult:
    """
    Build the playoff bracket and its initial matches for a finished regular season.

    qualified_participants is either ranked best first (index 0 = seed 1) or
    a list of GroupPlacement entries, which are seeded so that clubs from one
    group never meet in their first playoff game. config.random_seeding
    ignores both orders. Playoff weeks start on the first match day after
    the last regular-season match (or config.start_date when given).

    Raises:
        SchedulingError: playoffs_not_supported, playoffs_already_exists,
            matches_not_finished, group_standings_invalid, then playoff
            builder codes
    """
    config = config or PlayoffConfig()
    ensure_playoffs_allowed(season_id, state)

    best_of = config.best_of if config.best_of is not None else state.playoff_best_of
    main_size = config.main_bracket_size if config.main_bracket_size is not None else state.main_bracket_size
    consolation = (
        config.consolation
        if config.consolation is not None
        else state.series_format == SeriesFormat.GROUP_SINGLE_ROUND_PLAYOFF
    )
    ranked, main_size = _ranked_field(qualified_participants, config.random_seeding, main_size)

    if config.random_seeding:
        plan = create_random_playoff_plans(
            ranked,
            best_of=best_of,
            rng_seed=config.random_seed,
            main_bracket_size=main_size,
            consolation=consolation,
            qualification_two_legged=config.qualification_two_legged,
        )
    else:
        plan = create_initial_playoff_plans(
            ranked,
            best_of=best_of,
            main_bracket_size=main_size,
            consolation=consolation,
            qualification_two_legged=config.qualification_two_legged,
        )

    start = config.start_date
    if start is None:
        start = state.last_match_date + timedelta(days=1) if state.last_match_date else state.season_start
    calendar = _calendar(
        start,
        state.match_day_of_week,
        state.match_time,
        state.timezone,
        config.slot_interval_minutes,
    )
    matches = materialize_bracket(plan, calendar)

    logger.info(
        "playoffs created: season=%s participants=%s bracket=%s qualification=%s consolation=%s matches=%s",
        season_id,
        plan.participant_count,
        plan.bracket_size,
        plan.has_qualification,
        plan.has_consolation,
        len(matches),
    )
    return PlayoffCreationResult(season_id=season_id, plan=plan, matches=matches)
