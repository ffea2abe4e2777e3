import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from league_scheduler.database import get_session
from league_scheduler.services import season_store
from league_scheduler.services.scheduling_errors import (
    MATCHES_NOT_FINISHED,
    NOT_ENOUGH_PAIRS,
    PLAYOFFS_ALREADY_EXISTS,
    PLAYOFFS_NOT_SUPPORTED,
    SEASON_NOT_FOUND,
    SchedulingError,
)
from league_scheduler.services.season_automation import PlayoffConfig, SeasonAutomationConfig
from league_scheduler.services.series_rules import SeriesFormat
from league_scheduler.utils.group_stage import GroupDefinition, GroupSlot, GroupStageConfig

logger = logging.getLogger(__name__)

router = APIRouter()

# Conditions that depend on the season's lifecycle, not on the request body
_CONFLICT_CODES = {PLAYOFFS_NOT_SUPPORTED, PLAYOFFS_ALREADY_EXISTS, MATCHES_NOT_FINISHED, NOT_ENOUGH_PAIRS}


def _raise_http(exc: SchedulingError, conflict_codes=frozenset()):
    if exc.code == SEASON_NOT_FOUND:
        raise HTTPException(status_code=404, detail=exc.code)
    status_code = 409 if exc.code in conflict_codes else 400
    logger.warning("season request rejected: %s (%s)", exc.code, exc.message)
    raise HTTPException(status_code=status_code, detail=exc.code)


# ============================================================================
# Request / Response Models
# ============================================================================


class GroupSlotRequest(BaseModel):
    club_id: int
    position: int


class GroupRequest(BaseModel):
    group_index: int
    label: Optional[str] = None
    qualify_count: Optional[int] = None
    slots: List[GroupSlotRequest]


class GroupStageRequest(BaseModel):
    group_count: int
    group_size: int
    qualify_count: int
    groups: List[GroupRequest]
    allow_byes: bool = False

    def to_config(self) -> GroupStageConfig:
        return GroupStageConfig(
            group_count=self.group_count,
            group_size=self.group_size,
            qualify_count=self.qualify_count,
            allow_byes=self.allow_byes,
            groups=tuple(
                GroupDefinition(
                    group_index=g.group_index,
                    label=g.label,
                    qualify_count=g.qualify_count,
                    slots=tuple(GroupSlot(club_id=s.club_id, position=s.position) for s in g.slots),
                )
                for g in self.groups
            ),
        )


class SeasonAutoRequest(BaseModel):
    competition_id: int
    season_name: str
    start_date: date
    match_day_of_week: int
    match_time: Optional[str] = None
    city: Optional[str] = None
    club_ids: List[int]
    series_format: SeriesFormat = SeriesFormat.SINGLE_MATCH
    group_stage: Optional[GroupStageRequest] = None
    group_rounds: int = 1
    playoff_best_of: int = 1
    main_bracket_size: Optional[int] = None
    random_seed: int = 0
    slot_interval_minutes: Optional[int] = None
    timezone: Optional[str] = None

    @field_validator("season_name")
    @classmethod
    def validate_season_name(cls, v):
        if not v or not v.strip():
            raise ValueError("season_name cannot be empty")
        return v.strip()

    def to_config(self) -> SeasonAutomationConfig:
        return SeasonAutomationConfig(
            competition_id=self.competition_id,
            season_name=self.season_name,
            start_date=self.start_date,
            match_day_of_week=self.match_day_of_week,
            match_time=self.match_time,
            city=self.city,
            club_ids=tuple(self.club_ids),
            series_format=self.series_format,
            group_stage=self.group_stage.to_config() if self.group_stage else None,
            group_rounds=self.group_rounds,
            playoff_best_of=self.playoff_best_of,
            main_bracket_size=self.main_bracket_size,
            random_seed=self.random_seed,
            slot_interval_minutes=self.slot_interval_minutes,
            timezone=self.timezone,
        )


class GroupResponse(BaseModel):
    group_index: int
    label: str
    qualify_count: int
    club_ids: List[int]


class SeasonAutoResponse(BaseModel):
    season_id: int
    series_format: SeriesFormat
    rounds: int
    matches_created: int
    playoff_matches_created: int
    groups: List[GroupResponse]


class PlayoffRequest(BaseModel):
    qualified_club_ids: Optional[List[int]] = None
    group_standings: Optional[Dict[int, List[int]]] = None  # group index -> clubs ranked best first
    best_of: Optional[int] = None
    main_bracket_size: Optional[int] = None
    consolation: Optional[bool] = None
    qualification_two_legged: bool = False
    random_seeding: bool = False
    random_seed: int = 0
    start_date: Optional[date] = None

    def to_config(self) -> PlayoffConfig:
        return PlayoffConfig(
            best_of=self.best_of,
            main_bracket_size=self.main_bracket_size,
            consolation=self.consolation,
            qualification_two_legged=self.qualification_two_legged,
            random_seeding=self.random_seeding,
            random_seed=self.random_seed,
            start_date=self.start_date,
        )


class BracketNodeResponse(BaseModel):
    code: str
    bracket_type: str
    stage_name: str
    round_number: int
    is_bye: bool
    is_third_place: bool
    side_a: str
    side_b: str


class PlayoffResponse(BaseModel):
    season_id: int
    bracket_size: int
    has_qualification: bool
    has_consolation: bool
    matches_created: int
    nodes: List[BracketNodeResponse]


class SeasonStatusResponse(BaseModel):
    season_id: int
    regular_season_confirmed: bool
    playoffs_created: bool


class MatchResponse(BaseModel):
    id: int
    round_type: str
    round_number: int
    stage_name: str
    group_index: Optional[int] = None
    series_key: str
    series_match_number: int
    series_length: int
    home_club_id: Optional[int] = None
    away_club_id: Optional[int] = None
    placeholder_home: str
    placeholder_away: str
    kickoff_at: datetime
    city: Optional[str] = None

    class Config:
        from_attributes = True


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/seasons/auto", response_model=SeasonAutoResponse, status_code=201)
def create_season_auto(request: SeasonAutoRequest, session: Session = Depends(get_session)):
    """Create a season with its full regular-season calendar (or bracket for PLAYOFF_BRACKET)"""
    try:
        season, result = season_store.persist_season(session, request.to_config())
    except SchedulingError as e:
        _raise_http(e)

    return SeasonAutoResponse(
        season_id=season.id,
        series_format=result.series_format,
        rounds=result.round_count,
        matches_created=len(result.matches),
        playoff_matches_created=len(result.playoff_matches),
        groups=[
            GroupResponse(
                group_index=g.group_index,
                label=g.label,
                qualify_count=g.qualify_count,
                club_ids=list(g.club_ids),
            )
            for g in result.groups
        ],
    )


@router.post("/seasons/{season_id}/regular-season/confirm", response_model=SeasonStatusResponse)
def confirm_regular_season(season_id: int, session: Session = Depends(get_session)):
    """Confirm all regular-season matches are finished (unlocks playoff creation)"""
    try:
        season = season_store.confirm_regular_season(session, season_id)
    except SchedulingError as e:
        _raise_http(e)

    return SeasonStatusResponse(
        season_id=season.id,
        regular_season_confirmed=season.regular_season_confirmed,
        playoffs_created=season.playoffs_created,
    )


@router.post("/seasons/{season_id}/playoffs", response_model=PlayoffResponse, status_code=201)
def create_playoffs(
    season_id: int,
    request: Optional[PlayoffRequest] = None,
    session: Session = Depends(get_session),
):
    """Build and store the playoff bracket for a confirmed season"""
    request = request or PlayoffRequest()
    try:
        result = season_store.create_playoffs_for_season(
            session,
            season_id,
            qualified_participants=request.qualified_club_ids,
            config=request.to_config(),
            group_standings=request.group_standings,
        )
    except SchedulingError as e:
        _raise_http(e, _CONFLICT_CODES)

    plan = result.plan
    return PlayoffResponse(
        season_id=season_id,
        bracket_size=plan.bracket_size,
        has_qualification=plan.has_qualification,
        has_consolation=plan.has_consolation,
        matches_created=len(result.matches),
        nodes=[
            BracketNodeResponse(
                code=n.code,
                bracket_type=n.bracket_type.value,
                stage_name=n.stage_name,
                round_number=n.round_number,
                is_bye=n.is_bye,
                is_third_place=n.is_third_place,
                side_a=plan.side_label(n.side_a),
                side_b=plan.side_label(n.side_b),
            )
            for n in plan.nodes
            if not n.is_void
        ],
    )


@router.get("/seasons/{season_id}/matches", response_model=List[MatchResponse])
def list_season_matches(season_id: int, session: Session = Depends(get_session)):
    """All stored fixtures of a season ordered by kickoff"""
    try:
        return season_store.list_season_matches(session, season_id)
    except SchedulingError as e:
        _raise_http(e)
