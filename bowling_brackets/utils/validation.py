"""
Input validation for engine operations.

Each helper either returns a typed, checked value or raises ValidationError
with a message naming the offending field. Values are never coerced: a
numeric string is rejected, not parsed.
"""

from dataclasses import dataclass
from typing import Any, List, Sequence, Union

from bowling_brackets.config import Config
from bowling_brackets.constants import BracketConstants
from bowling_brackets.database.models import BracketType, SideGameType
from bowling_brackets.utils.exceptions import ContractError, ValidationError


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_id(value: Any, name: str) -> int:
    """Validate a record identifier. A missing one breaks the calling contract."""
    if value is None or value == '':
        raise ContractError(f"{name} is required")
    if not _is_int(value) or value < 1:
        raise ValidationError(name, f"expected a positive integer id, got {value!r}")
    return value


def validate_bracket_type(value: Any) -> BracketType:
    try:
        return BracketType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in BracketType)
        raise ValidationError('type', f"must be one of {allowed}, got {value!r}")


def validate_side_game_type(value: Any) -> SideGameType:
    try:
        return SideGameType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in SideGameType)
        raise ValidationError('type', f"must be one of {allowed}, got {value!r}")


def validate_game_number(value: Any) -> int:
    if not _is_int(value) or value < 1:
        raise ValidationError('game_number', f"must be an integer of at least 1, got {value!r}")
    return value


def validate_score(value: Any, field: str = 'score', minimum: int = None, maximum: int = None) -> int:
    minimum = Config.MIN_GAME_SCORE if minimum is None else minimum
    maximum = Config.MAX_GAME_SCORE if maximum is None else maximum
    if not _is_int(value):
        raise ValidationError(field, f"must be an integer, got {value!r}")
    if value < minimum or value > maximum:
        raise ValidationError(field, f"must be between {minimum} and {maximum}, got {value}")
    return value


def validate_games(games: Any, minimum: int = None, maximum: int = None) -> List[int]:
    """Validate one entry's game scores: exactly three integers within bounds."""
    expected = BracketConstants.GAMES_PER_ENTRY
    if not isinstance(games, (list, tuple)) or len(games) != expected:
        raise ValidationError('games', f"exactly {expected} game scores are required")
    return [
        validate_score(score, f"game {index}", minimum, maximum)
        for index, score in enumerate(games, start=1)
    ]


def validate_position(value: Any, capacity: int = BracketConstants.BRACKET_SIZE) -> int:
    if not _is_int(value) or value < 1 or value > capacity:
        raise ValidationError('position', f"must be between 1 and {capacity}, got {value!r}")
    return value


def validate_cutoff(value: Any) -> int:
    if not _is_int(value) or value < 0:
        raise ValidationError('cutoff', f"must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True)
class SideGameScore:
    """One competitor's score for one side game type."""
    competitor_id: int
    type: SideGameType
    score: int


ScoreInput = Union[SideGameScore, Sequence[Any], dict]


def parse_side_game_score(item: ScoreInput) -> SideGameScore:
    """Accept a SideGameScore, a (competitor_id, type, score) tuple or a dict."""
    if isinstance(item, SideGameScore):
        competitor_id, side_type, score = item.competitor_id, item.type, item.score
    elif isinstance(item, dict):
        competitor_id, side_type, score = item.get('competitor_id'), item.get('type'), item.get('score')
    elif isinstance(item, (list, tuple)) and len(item) == 3:
        competitor_id, side_type, score = item
    else:
        raise ValidationError('scores', f"unrecognized score item {item!r}")

    if not _is_int(competitor_id) or competitor_id < 1:
        raise ValidationError('competitor_id', f"expected a positive integer id, got {competitor_id!r}")
    return SideGameScore(
        competitor_id=competitor_id,
        type=validate_side_game_type(side_type),
        score=validate_score(score),
    )


def validate_standing(value: Any) -> int:
    """A finishing place in a side game: 1 is first, with no upper bound."""
    if not _is_int(value) or value < 1:
        raise ValidationError('position', f"must be an integer of at least 1, got {value!r}")
    return value


def validate_payout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError('payout', f"must be a non-negative amount, got {value!r}")
    return float(value)
