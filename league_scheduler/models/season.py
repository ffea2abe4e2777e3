from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league_scheduler.models.match import Match
    from league_scheduler.models.playoff_series import PlayoffSeries


class Season(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    competition_id: int = Field(index=True)
    name: str
    city: Optional[str] = None
    series_format: str  # SeriesFormat value
    start_date: date
    match_day_of_week: int  # 0=Monday, 6=Sunday
    match_time: str = Field(default="18:00")
    timezone: str = Field(default="UTC")
    playoff_best_of: int = Field(default=1)
    main_bracket_size: Optional[int] = Field(default=None)
    random_seed: int = Field(default=0)

    # Lifecycle flags (set by the store, read back into SeasonState)
    regular_season_confirmed: bool = Field(default=False)
    regular_season_confirmed_at: Optional[datetime] = Field(default=None)
    playoffs_created: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    groups: List["SeasonGroup"] = Relationship(back_populates="season")
    participants: List["SeasonParticipant"] = Relationship(back_populates="season")
    playoff_series: List["PlayoffSeries"] = Relationship(back_populates="season")
    matches: List["Match"] = Relationship(back_populates="season")


class SeasonGroup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "group_index", name="uq_season_group_index"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    group_index: int
    label: str
    qualify_count: int

    season: "Season" = Relationship(back_populates="groups")


class SeasonParticipant(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("season_id", "club_id", name="uq_season_club"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    club_id: int
    sequence: int  # position in the submitted club list (1-based)
    group_index: Optional[int] = Field(default=None)
    group_position: Optional[int] = Field(default=None)

    season: "Season" = Relationship(back_populates="participants")
