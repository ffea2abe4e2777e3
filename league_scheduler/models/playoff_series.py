from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from league_scheduler.models.match import Match
    from league_scheduler.models.season import Season


class PlayoffSeries(SQLModel, table=True):
    """One bracket node of a season's playoffs (byes included, void nodes skipped)."""

    __table_args__ = (SAUniqueConstraint("season_id", "code", name="uq_season_series_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    season_id: int = Field(foreign_key="season.id", index=True)
    node_index: int  # index in the plan's node arena
    code: str  # e.g. "MAIN-R1-2", "GOLD-R3-1"
    bracket_type: str  # "MAIN" | "QUALIFICATION" | "GOLD" | "SILVER"
    stage_name: str
    round_number: int
    slot: int
    series_length: int
    is_bye: bool = Field(default=False)
    is_third_place: bool = Field(default=False)

    # Known sides (null until the feeder series is decided)
    side_a_club_id: Optional[int] = Field(default=None)
    side_b_club_id: Optional[int] = Field(default=None)
    side_a_seed: Optional[int] = Field(default=None)
    side_b_seed: Optional[int] = Field(default=None)
    placeholder_side_a: str
    placeholder_side_b: str

    # Upstream series feeding each side
    source_series_a_id: Optional[int] = Field(default=None, foreign_key="playoffseries.id")
    source_series_b_id: Optional[int] = Field(default=None, foreign_key="playoffseries.id")
    source_a_role: Optional[str] = Field(default=None)  # "WINNER" | "LOSER"
    source_b_role: Optional[str] = Field(default=None)

    winner_club_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    season: "Season" = Relationship(back_populates="playoff_series")
    matches: List["Match"] = Relationship(back_populates="playoff_series")
