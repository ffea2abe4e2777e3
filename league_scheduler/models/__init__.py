from league_scheduler.models.match import Match
from league_scheduler.models.playoff_series import PlayoffSeries
from league_scheduler.models.season import Season, SeasonGroup, SeasonParticipant

__all__ = [
    "Season",
    "SeasonGroup",
    "SeasonParticipant",
    "PlayoffSeries",
    "Match",
]
