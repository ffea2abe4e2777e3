from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league_scheduler.models.playoff_series import PlayoffSeries
    from league_scheduler.models.season import Season


class Match(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("season_id", "series_key", "series_match_number", name="uq_match_series_game"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    playoff_series_id: Optional[int] = Field(default=None, foreign_key="playoffseries.id")
    round_type: str  # "REGULAR" | "PLAYOFF"
    round_number: int
    stage_name: str
    group_index: Optional[int] = Field(default=None)
    series_key: str
    series_match_number: int
    series_length: int

    # Club assignments (null while a playoff side is still undecided)
    home_club_id: Optional[int] = Field(default=None)
    away_club_id: Optional[int] = Field(default=None)

    # Placeholder text (always present, used when club ids are null or for display)
    placeholder_home: str
    placeholder_away: str

    kickoff_at: datetime  # UTC, naive
    city: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    season: "Season" = Relationship(back_populates="matches")
    playoff_series: Optional["PlayoffSeries"] = Relationship(back_populates="matches")
