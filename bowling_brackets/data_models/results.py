"""
Result data models returned by engine operations.

Every public operation returns an ``OperationResult``: a discriminated
success/failure value. Expected domain conditions (uneven pools, missing
entries, validation problems) arrive as failures carrying the exception's
code, user message and details instead of being raised.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bowling_brackets.data_models.records import Bracket
from bowling_brackets.utils.exceptions import BracketEngineException


@dataclass(frozen=True)
class OperationResult:
    """Success or failure of one engine operation."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None) -> 'OperationResult':
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, exc: BracketEngineException) -> 'OperationResult':
        return cls(
            success=False,
            error=exc.user_message,
            error_code=exc.code,
            details=dict(exc.details),
        )


@dataclass(frozen=True)
class PartitionPlan:
    """Outcome of a successful pool partition."""
    group_count: int
    pool: List[Any]


@dataclass(frozen=True)
class GenerateSummary:
    """Brackets created by one generate call."""
    brackets_created: int
    total_competitors: int
    brackets: List[Bracket]


@dataclass(frozen=True)
class ScoreBatchSummary:
    """Side-game upserts performed by one call."""
    processed_count: int
    created_count: int
    updated_count: int


@dataclass(frozen=True)
class SheetSummary:
    """Bracket scores and derived side-game scores recorded for one bracket sheet."""
    entries_updated: int
    side_games: ScoreBatchSummary


@dataclass(frozen=True)
class ProgressSummary:
    """Brackets finalized by one progress call."""
    progressed_brackets: int
    total_brackets: int
    skipped_bracket_numbers: List[int]


@dataclass(frozen=True)
class CutoffReport:
    """Eliminator cut line for one game."""
    cutoff: int
    total_competitors: int
    game_number: int
    above_cutoff: int
    below_cutoff: int


@dataclass(frozen=True)
class EliminationReport:
    """Eliminations applied by one eliminate call."""
    eliminated_count: int
    remaining_count: int
    cutoff: int
    game_number: int


@dataclass(frozen=True)
class SessionStats:
    """Enrollment statistics for a session's competitors."""
    total: int
    scratch_entries: int
    handicap_entries: int
    high_game_scratch: int
    high_game_handicap: int
    eliminator: int
    average_score: int
    lanes_used: List[int]
