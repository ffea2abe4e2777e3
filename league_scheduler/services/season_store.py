"""
Season Store - persistence around the scheduling engine

Each public function is one unit of work: the engine runs first (pure, may
raise SchedulingError before anything is written), then all rows are added
and committed once. A database failure rolls the whole write back.
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from league_scheduler.config import LEAGUE_TIMEZONE
from league_scheduler.models import Match, PlayoffSeries, Season, SeasonGroup, SeasonParticipant
from league_scheduler.services.group_seeding import GroupPlacement
from league_scheduler.services.playoff_plan import PlayoffPlan
from league_scheduler.services.scheduling_errors import GROUP_STANDINGS_INVALID, SEASON_NOT_FOUND, SchedulingError
from league_scheduler.services.season_automation import (
    PlayoffConfig,
    PlayoffCreationResult,
    SeasonAutomationConfig,
    SeasonAutomationResult,
    SeasonState,
    create_season_playoffs,
    ensure_playoffs_allowed,
    run_season_automation,
)
from league_scheduler.services.series_materializer import ROUND_TYPE_REGULAR, ScheduledMatch, series_for_node
from league_scheduler.services.series_rules import SeriesFormat
from league_scheduler.utils.calendar_math import league_timezone

logger = logging.getLogger(__name__)


# ============================================================================
# Row builders
# ============================================================================


def _to_utc_naive(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _match_row(
    season: Season,
    scheduled: ScheduledMatch,
    series_ids: Optional[Dict[int, int]] = None,
) -> Match:
    series_id = None
    if series_ids is not None and scheduled.node_index is not None:
        series_id = series_ids.get(scheduled.node_index)
    return Match(
        season_id=season.id,
        playoff_series_id=series_id,
        round_type=scheduled.round_type,
        round_number=scheduled.round_number,
        stage_name=scheduled.stage_name,
        group_index=scheduled.group_index,
        series_key=scheduled.series_key,
        series_match_number=scheduled.series_match_number,
        series_length=scheduled.series_length,
        home_club_id=scheduled.home_club_id,
        away_club_id=scheduled.away_club_id,
        placeholder_home=scheduled.home_placeholder,
        placeholder_away=scheduled.away_placeholder,
        kickoff_at=_to_utc_naive(scheduled.kickoff),
        city=season.city,
    )


def _add_plan(session: Session, season: Season, plan: PlayoffPlan) -> Dict[int, int]:
    """
    Insert one PlayoffSeries per non-void node, feeders first.
    Returns node index -> PlayoffSeries.id.
    """
    series_ids: Dict[int, int] = {}
    for node in plan.nodes:
        if node.is_void:
            continue
        row = PlayoffSeries(
            season_id=season.id,
            node_index=node.index,
            code=node.code,
            bracket_type=node.bracket_type.value,
            stage_name=node.stage_name,
            round_number=node.round_number,
            slot=node.slot,
            series_length=series_for_node(plan, node).length,
            is_bye=node.is_bye,
            is_third_place=node.is_third_place,
            side_a_club_id=node.side_a.participant,
            side_b_club_id=node.side_b.participant,
            side_a_seed=node.side_a.seed,
            side_b_seed=node.side_b.seed,
            placeholder_side_a=plan.side_label(node.side_a),
            placeholder_side_b=plan.side_label(node.side_b),
            source_series_a_id=series_ids.get(node.side_a.source_index),
            source_series_b_id=series_ids.get(node.side_b.source_index),
            source_a_role=node.side_a.source_role,
            source_b_role=node.side_b.source_role,
        )
        if node.is_bye:
            # Nothing to play: the present side is already through
            row.winner_club_id = node.present_side().participant
        session.add(row)
        session.flush()
        series_ids[node.index] = row.id
    return series_ids


# ============================================================================
# Public API
# ============================================================================


def get_season(session: Session, season_id: int) -> Season:
    season = session.get(Season, season_id)
    if not season:
        raise SchedulingError(SEASON_NOT_FOUND, f"season {season_id} not found")
    return season


def persist_season(session: Session, config: SeasonAutomationConfig) -> Tuple[Season, SeasonAutomationResult]:
    """
    Run season automation and store the season with all its rows.

    Returns (season, result). SchedulingError propagates with nothing written.
    """
    result: SeasonAutomationResult = run_season_automation(config)

    try:
        season = Season(
            competition_id=config.competition_id,
            name=config.season_name,
            city=config.city,
            series_format=config.series_format.value,
            start_date=config.start_date,
            match_day_of_week=config.match_day_of_week,
            match_time=f"{result.calendar.hours:02d}:{result.calendar.minutes:02d}",
            timezone=config.timezone or LEAGUE_TIMEZONE,
            playoff_best_of=config.playoff_best_of,
            main_bracket_size=config.main_bracket_size,
            random_seed=config.random_seed,
            playoffs_created=result.playoff_plan is not None,
        )
        session.add(season)
        session.flush()

        placement = {}
        for group in result.groups:
            session.add(SeasonGroup(
                season_id=season.id,
                group_index=group.group_index,
                label=group.label,
                qualify_count=group.qualify_count,
            ))
            for position, club_id in enumerate(group.club_ids, start=1):
                placement[club_id] = (group.group_index, position)

        seen = set()
        sequence = 0
        for club_id in config.club_ids:
            if club_id in seen:
                continue
            seen.add(club_id)
            sequence += 1
            group_index, position = placement.get(club_id, (None, None))
            session.add(SeasonParticipant(
                season_id=season.id,
                club_id=club_id,
                sequence=sequence,
                group_index=group_index,
                group_position=position,
            ))

        for scheduled in result.matches:
            session.add(_match_row(season, scheduled))

        if result.playoff_plan is not None:
            series_ids = _add_plan(session, season, result.playoff_plan)
            for scheduled in result.playoff_matches:
                session.add(_match_row(season, scheduled, series_ids))

        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Persist season failed, transaction rolled back")
        raise

    session.refresh(season)
    logger.info(
        "season stored: id=%s groups=%s participants=%s matches=%s",
        season.id,
        len(result.groups),
        sequence,
        len(result.all_matches),
    )
    return season, result


def confirm_regular_season(session: Session, season_id: int) -> Season:
    """Mark the regular season as finished; repeat calls keep the first timestamp."""
    season = get_season(session, season_id)
    if not season.regular_season_confirmed:
        season.regular_season_confirmed = True
        season.regular_season_confirmed_at = datetime.utcnow()
        session.add(season)
        session.commit()
        session.refresh(season)
    return season


def _last_regular_match_date(session: Session, season: Season) -> Optional[date]:
    kickoffs = session.exec(
        select(Match.kickoff_at).where(Match.season_id == season.id, Match.round_type == ROUND_TYPE_REGULAR)
    ).all()
    if not kickoffs:
        return None
    zone = league_timezone(season.timezone)
    return max(k.replace(tzinfo=timezone.utc).astimezone(zone).date() for k in kickoffs)


def load_season_state(session: Session, season_id: int) -> SeasonState:
    season = get_season(session, season_id)
    return SeasonState(
        series_format=SeriesFormat(season.series_format),
        season_start=season.start_date,
        match_day_of_week=season.match_day_of_week,
        regular_season_confirmed=season.regular_season_confirmed,
        playoffs_exist=season.playoffs_created,
        match_time=season.match_time,
        timezone=season.timezone,
        playoff_best_of=season.playoff_best_of,
        main_bracket_size=season.main_bracket_size,
        last_match_date=_last_regular_match_date(session, season),
    )


def season_club_ids(session: Session, season_id: int) -> List[int]:
    """Participants in submitted order."""
    rows = session.exec(
        select(SeasonParticipant)
        .where(SeasonParticipant.season_id == season_id)
        .order_by(SeasonParticipant.sequence)
    ).all()
    return [p.club_id for p in rows]


def group_qualifiers(
    session: Session,
    season_id: int,
    group_standings: Optional[Dict[int, Sequence[int]]] = None,
) -> List[GroupPlacement]:
    """
    Top qualify_count clubs of every group as GroupPlacement entries.

    group_standings maps group index -> club ids ranked best first and must
    cover every group. Without it the stored slot order stands in for the
    ranking.
    """
    groups = session.exec(
        select(SeasonGroup).where(SeasonGroup.season_id == season_id).order_by(SeasonGroup.group_index)
    ).all()
    participants = session.exec(
        select(SeasonParticipant)
        .where(SeasonParticipant.season_id == season_id, SeasonParticipant.group_index.is_not(None))
        .order_by(SeasonParticipant.group_index, SeasonParticipant.group_position)
    ).all()
    members: Dict[int, List[int]] = {}
    for p in participants:
        members.setdefault(p.group_index, []).append(p.club_id)

    if group_standings is not None:
        known = {g.group_index for g in groups}
        if set(group_standings) != known:
            raise SchedulingError(
                GROUP_STANDINGS_INVALID,
                f"standings cover groups {sorted(group_standings)}, season has {sorted(known)}",
            )
        for group_index, ranked in group_standings.items():
            strangers = set(ranked) - set(members.get(group_index, []))
            if strangers or len(set(ranked)) != len(ranked):
                raise SchedulingError(
                    GROUP_STANDINGS_INVALID, f"group {group_index} standings do not match its clubs"
                )

    placements: List[GroupPlacement] = []
    for group in groups:
        if group_standings is not None:
            ranked = list(group_standings[group.group_index])
        else:
            ranked = members.get(group.group_index, [])
        for placement, club_id in enumerate(ranked[: group.qualify_count], start=1):
            placements.append(GroupPlacement(participant=club_id, group_index=group.group_index, placement=placement))
    return placements


def create_playoffs_for_season(
    session: Session,
    season_id: int,
    qualified_participants: Optional[Sequence[Hashable]] = None,
    config: Optional[PlayoffConfig] = None,
    group_standings: Optional[Dict[int, Sequence[int]]] = None,
) -> PlayoffCreationResult:
    """
    Build, store and mark the season's playoffs in one commit.

    The field is, in order of preference:
    1. qualified_participants as given (ranked best first, may be empty)
    2. for a group-stage season, the qualify_count best of every group,
       ranked by group_standings or by slot order, seeded across groups
    3. every season participant, ranked in submitted order
    """
    season = get_season(session, season_id)
    state = load_season_state(session, season_id)
    ensure_playoffs_allowed(season_id, state)

    has_groups = session.exec(select(SeasonGroup.id).where(SeasonGroup.season_id == season_id)).first() is not None
    if group_standings is not None and (qualified_participants is not None or not has_groups):
        raise SchedulingError(
            GROUP_STANDINGS_INVALID, "group standings need a group-stage season and no qualified list"
        )

    if qualified_participants is not None:
        qualified = list(qualified_participants)
    elif has_groups:
        qualified = group_qualifiers(session, season_id, group_standings)
    else:
        qualified = season_club_ids(session, season_id)

    result = create_season_playoffs(season_id, qualified, config, state)

    try:
        series_ids = _add_plan(session, season, result.plan)
        for scheduled in result.matches:
            session.add(_match_row(season, scheduled, series_ids))
        season.playoffs_created = True
        session.add(season)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Create playoffs failed, transaction rolled back")
        raise

    logger.info(
        "playoffs stored: season=%s series=%s matches=%s",
        season_id,
        len(series_ids),
        len(result.matches),
    )
    return result


def list_season_matches(session: Session, season_id: int) -> List[Match]:
    get_season(session, season_id)
    return session.exec(
        select(Match)
        .where(Match.season_id == season_id)
        .order_by(Match.kickoff_at, Match.id)
    ).all()
