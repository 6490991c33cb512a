"""
Record data models for the bracket engine.

Provides immutable value objects built from raw store records. Building one
is the single schema-validation step between storage and business logic:
once a record has become a ``Bracket`` or ``BracketEntry`` its fields are
typed and checked, and nothing downstream coerces values again.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from bowling_brackets.constants import BracketConstants
from bowling_brackets.database.models import BracketStatus, BracketType, SideGameType
from bowling_brackets.utils.exceptions import ValidationError


def _require(record: Dict[str, Any], field: str) -> Any:
    if record.get(field) is None:
        raise ValidationError(field, "missing from stored record")
    return record[field]


def _expanded(record: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    return (record.get('expand') or {}).get(name)


@dataclass(frozen=True)
class SessionInfo:
    """A bowling session as seen by the engine (read-only)."""
    id: int
    name: str
    handicap_percentage: int
    bracket_price: float
    status: str

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'SessionInfo':
        return cls(
            id=_require(record, 'id'),
            name=record.get('name') or '',
            handicap_percentage=int(record.get('handicap_percentage') or 0),
            bracket_price=float(_require(record, 'bracket_price')),
            status=_require(record, 'status'),
        )


@dataclass(frozen=True)
class Competitor:
    """A registered competitor and their category enrollment."""
    id: int
    session_id: int
    name: str
    average: int
    handicap: int
    lane: Optional[int]
    scratch_brackets: int
    handicap_brackets: int
    high_game_scratch: bool
    high_game_handicap: bool
    eliminator: bool

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Competitor':
        return cls(
            id=_require(record, 'id'),
            session_id=_require(record, 'session_id'),
            name=record.get('name') or '',
            average=int(record.get('average') or 0),
            handicap=int(record.get('handicap') or 0),
            lane=record.get('lane'),
            scratch_brackets=int(record.get('scratch_brackets') or 0),
            handicap_brackets=int(record.get('handicap_brackets') or 0),
            high_game_scratch=bool(record.get('high_game_scratch')),
            high_game_handicap=bool(record.get('high_game_handicap')),
            eliminator=bool(record.get('eliminator')),
        )

    def bracket_count(self, bracket_type: BracketType) -> int:
        if bracket_type == BracketType.HANDICAP:
            return self.handicap_brackets
        return self.scratch_brackets

    def is_eligible(self, bracket_type: BracketType) -> bool:
        return self.bracket_count(bracket_type) > 0


@dataclass(frozen=True)
class Bracket:
    """An 8-seat bracket container."""
    id: int
    session_id: int
    type: BracketType
    bracket_number: int
    status: BracketStatus
    capacity: int
    current_size: int
    winner_id: Optional[int] = None
    runner_up_id: Optional[int] = None
    winner: Optional[Competitor] = None
    runner_up: Optional[Competitor] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'Bracket':
        winner = _expanded(record, 'winner')
        runner_up = _expanded(record, 'runner_up')
        return cls(
            id=_require(record, 'id'),
            session_id=_require(record, 'session_id'),
            type=BracketType(_require(record, 'type')),
            bracket_number=_require(record, 'bracket_number'),
            status=BracketStatus(_require(record, 'status')),
            capacity=record.get('capacity') or BracketConstants.BRACKET_SIZE,
            current_size=record.get('current_size') or 0,
            winner_id=record.get('winner_id'),
            runner_up_id=record.get('runner_up_id'),
            winner=Competitor.from_record(winner) if winner else None,
            runner_up=Competitor.from_record(runner_up) if runner_up else None,
        )

    @property
    def is_full(self) -> bool:
        return self.current_size >= self.capacity

    @property
    def is_completed(self) -> bool:
        return self.status == BracketStatus.COMPLETED


@dataclass(frozen=True)
class BracketEntry:
    """A competitor's seat and scores in one bracket."""
    id: int
    bracket_id: int
    competitor_id: int
    position: int
    games: Tuple[int, ...]
    total_score: int
    final_position: Optional[int] = None
    competitor: Optional[Competitor] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'BracketEntry':
        games = tuple(record.get('games') or (0,) * BracketConstants.GAMES_PER_ENTRY)
        if len(games) != BracketConstants.GAMES_PER_ENTRY:
            raise ValidationError('games', f"stored entry {record.get('id')} has {len(games)} games")
        competitor = _expanded(record, 'competitor')
        return cls(
            id=_require(record, 'id'),
            bracket_id=_require(record, 'bracket_id'),
            competitor_id=_require(record, 'competitor_id'),
            position=_require(record, 'position'),
            games=games,
            total_score=record.get('total_score') or 0,
            final_position=record.get('final_position'),
            competitor=Competitor.from_record(competitor) if competitor else None,
        )

    @property
    def is_scored(self) -> bool:
        return self.total_score > 0


@dataclass(frozen=True)
class SideGameEntry:
    """A competitor's score in one game of one side game."""
    id: int
    session_id: int
    type: SideGameType
    competitor_id: int
    game_number: int
    score: int
    handicap_score: int
    position: Optional[int] = None
    payout: float = 0.0
    is_eliminated: bool = False
    competitor: Optional[Competitor] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'SideGameEntry':
        competitor = _expanded(record, 'competitor')
        return cls(
            id=_require(record, 'id'),
            session_id=_require(record, 'session_id'),
            type=SideGameType(_require(record, 'type')),
            competitor_id=_require(record, 'competitor_id'),
            game_number=_require(record, 'game_number'),
            score=record.get('score') or 0,
            handicap_score=record.get('handicap_score') or 0,
            position=record.get('position'),
            payout=float(record.get('payout') or 0),
            is_eliminated=bool(record.get('is_eliminated')),
            competitor=Competitor.from_record(competitor) if competitor else None,
        )
