"""
Series Rules — season formats and per-pairing series lengths (single source of truth).

SeriesFormat is the season-level format: it decides how the regular season
is played and whether playoffs exist. MatchSeries is how many matches one
pairing turns into.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet

from league_scheduler.services.scheduling_errors import INVALID_SERIES_LENGTH, SchedulingError


# =============================================================================
# Season formats
# =============================================================================

class SeriesFormat(str, Enum):
    SINGLE_MATCH = "SINGLE_MATCH"
    TWO_LEGGED = "TWO_LEGGED"
    BEST_OF_N = "BEST_OF_N"
    DOUBLE_ROUND_PLAYOFF = "DOUBLE_ROUND_PLAYOFF"
    PLAYOFF_BRACKET = "PLAYOFF_BRACKET"
    GROUP_SINGLE_ROUND_PLAYOFF = "GROUP_SINGLE_ROUND_PLAYOFF"


PLAYOFF_FORMATS: FrozenSet[SeriesFormat] = frozenset({
    SeriesFormat.BEST_OF_N,
    SeriesFormat.DOUBLE_ROUND_PLAYOFF,
    SeriesFormat.PLAYOFF_BRACKET,
    SeriesFormat.GROUP_SINGLE_ROUND_PLAYOFF,
})


def supports_playoffs(series_format: SeriesFormat) -> bool:
    return series_format in PLAYOFF_FORMATS


def regular_season_rounds(series_format: SeriesFormat) -> int:
    """
    Round robins in the regular season (without a group stage).
    PLAYOFF_BRACKET has no regular season: 0.
    """
    if series_format == SeriesFormat.PLAYOFF_BRACKET:
        return 0
    if series_format in (SeriesFormat.TWO_LEGGED, SeriesFormat.DOUBLE_ROUND_PLAYOFF):
        return 2
    return 1


# =============================================================================
# Per-pairing series
# =============================================================================

ALLOWED_BEST_OF: FrozenSet[int] = frozenset({1, 3, 5, 7})


def validate_best_of(best_of: int) -> int:
    if best_of not in ALLOWED_BEST_OF:
        raise SchedulingError(
            INVALID_SERIES_LENGTH,
            f"best-of length must be one of {sorted(ALLOWED_BEST_OF)}, got {best_of}",
        )
    return best_of


class SeriesKind(str, Enum):
    SINGLE = "SINGLE"
    BEST_OF = "BEST_OF"
    TWO_LEGGED = "TWO_LEGGED"


@dataclass(frozen=True)
class MatchSeries:
    kind: SeriesKind
    length: int

    @classmethod
    def single(cls) -> "MatchSeries":
        return cls(SeriesKind.SINGLE, 1)

    @classmethod
    def best_of(cls, games: int) -> "MatchSeries":
        validate_best_of(games)
        if games == 1:
            return cls.single()
        return cls(SeriesKind.BEST_OF, games)

    @classmethod
    def two_legged(cls) -> "MatchSeries":
        """Home and away legs; a level aggregate goes to a penalty shootout."""
        return cls(SeriesKind.TWO_LEGGED, 2)

    @property
    def win_threshold(self) -> int:
        """Wins needed to take the series (used by result tracking, not here)."""
        if self.kind == SeriesKind.BEST_OF:
            return self.length // 2 + 1
        return 1

    @property
    def decided_by_shootout(self) -> bool:
        return self.kind == SeriesKind.TWO_LEGGED
