"""
Handicap arithmetic shared by the score ledger, the ranking engine and the
eliminator cutoff.

All rounding here is half-up (175.5 -> 176), not Python's banker's rounding.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from bowling_brackets.constants import ScoreConstants
from bowling_brackets.database.models import BracketType, SideGameType

Number = Union[int, float, Decimal]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_handicap(average: int, percentage: Number, base: int = ScoreConstants.HANDICAP_BASE) -> int:
    """
    Calculate a competitor's handicap from their average.

    Args:
        average: Competitor's average (0-300)
        percentage: Session handicap percentage (0-100)
        base: Average the handicap is measured against

    Returns:
        Pins added per game, never negative
    """
    return round_half_up(max(0, (base - average) * Decimal(str(percentage)) / 100))


def bracket_rank_key(total_score: int, bracket_type: BracketType, handicap: int = 0) -> int:
    """Score a bracket entry is ranked by: total, plus handicap for handicap brackets."""
    if bracket_type == BracketType.HANDICAP:
        return total_score + (handicap or 0)
    return total_score


def side_game_handicap_score(score: int, side_game_type: SideGameType, handicap: int = 0) -> int:
    """Handicap score stored on a side-game entry."""
    if side_game_type == SideGameType.HIGH_GAME_HANDICAP:
        return score + (handicap or 0)
    return score
