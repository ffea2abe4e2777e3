"""
Named scheduling errors.

Every caller-facing failure of the engine is a SchedulingError carrying one of
the codes below. str(error) is the code, so callers can switch on it directly.
"""

NOT_ENOUGH_PARTICIPANTS = "not_enough_participants"
NOT_ENOUGH_PAIRS = "not_enough_pairs"

GROUP_STAGE_REQUIRED = "group_stage_required"
GROUP_STAGE_INVALID_COUNT = "group_stage_invalid_count"
GROUP_STAGE_INVALID_SIZE = "group_stage_invalid_size"
GROUP_STAGE_COUNT_MISMATCH = "group_stage_count_mismatch"
GROUP_STAGE_DUPLICATE_INDEX = "group_stage_duplicate_index"
GROUP_STAGE_INVALID_SLOT_POSITION = "group_stage_invalid_slot_position"
GROUP_STAGE_DUPLICATE_SLOT_POSITION = "group_stage_duplicate_slot_position"
GROUP_STAGE_DUPLICATE_CLUB = "group_stage_duplicate_club"
GROUP_STAGE_INCOMPLETE = "group_stage_incomplete"
GROUP_STANDINGS_INVALID = "group_standings_invalid"

MATCHES_NOT_FINISHED = "matches_not_finished"
PLAYOFFS_ALREADY_EXISTS = "playoffs_already_exists"
PLAYOFFS_NOT_SUPPORTED = "playoffs_not_supported"
PLAYOFFS_BRACKET_OVERFLOW = "playoffs_bracket_overflow"

INVALID_ROUND_COUNT = "invalid_round_count"
INVALID_SERIES_LENGTH = "invalid_series_length"
INVALID_BRACKET_SIZE = "invalid_bracket_size"

SEASON_NOT_FOUND = "season_not_found"


class SchedulingError(ValueError):
    """Raised when a schedule or bracket cannot be built from the given input"""

    def __init__(self, code: str, message: str = ""):
        super().__init__(code)
        self.code = code
        self.message = message or code

    def __str__(self) -> str:
        return self.code
