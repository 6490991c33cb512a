from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Float, JSON,
    ForeignKey, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from enum import Enum

from bowling_brackets.constants import BracketConstants

Base = declarative_base()

class SessionType(str, Enum):
    LEAGUE = "league"
    TOURNAMENT = "tournament"

class SessionStatus(str, Enum):
    SETUP = "setup"
    ACTIVE = "active"
    COMPLETED = "completed"

class BracketType(str, Enum):
    SCRATCH = "scratch"
    HANDICAP = "handicap"

class BracketStatus(str, Enum):
    FORMING = "forming"
    FULL = "full"
    COMPLETED = "completed"

class SideGameType(str, Enum):
    HIGH_GAME_SCRATCH = "high_game_scratch"
    HIGH_GAME_HANDICAP = "high_game_handicap"
    ELIMINATOR = "eliminator"


def _enum_check(column: str, enum_cls) -> CheckConstraint:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return CheckConstraint(f"{column} IN ({values})", name=f"ck_{column}_values")


class BowlingSession(Base):
    __tablename__ = 'sessions'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default=SessionType.LEAGUE.value)
    handicap_percentage = Column(Integer, nullable=False, default=80)
    bracket_price = Column(Float, nullable=False)
    first_place_payout = Column(Float, nullable=True)
    second_place_payout = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default=SessionStatus.SETUP.value)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('handicap_percentage >= 0 AND handicap_percentage <= 100', name='ck_handicap_percentage'),
        CheckConstraint('bracket_price > 0', name='ck_bracket_price'),
        _enum_check('status', SessionStatus),
    )

    def __repr__(self):
        return f"<BowlingSession(id={self.id}, name='{self.name}', status='{self.status}')>"

class Competitor(Base):
    __tablename__ = 'competitors'

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey('sessions.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    average = Column(Integer, nullable=False)
    handicap = Column(Integer, nullable=False, default=0)
    lane = Column(Integer, nullable=True)

    # Category enrollment
    scratch_brackets = Column(Integer, nullable=False, default=0)
    handicap_brackets = Column(Integer, nullable=False, default=0)
    high_game_scratch = Column(Boolean, nullable=False, default=False)
    high_game_handicap = Column(Boolean, nullable=False, default=False)
    eliminator = Column(Boolean, nullable=False, default=False)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('average >= 0 AND average <= 300', name='ck_average_range'),
        CheckConstraint('handicap >= 0', name='ck_handicap_positive'),
    )

    def __repr__(self):
        return f"<Competitor(id={self.id}, name='{self.name}', average={self.average})>"

class Bracket(Base):
    __tablename__ = 'brackets'

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey('sessions.id'), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    bracket_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BracketStatus.FORMING.value)
    capacity = Column(Integer, nullable=False, default=BracketConstants.BRACKET_SIZE)
    current_size = Column(Integer, nullable=False, default=0)

    # Results (filled at progression)
    winner_id = Column(Integer, ForeignKey('competitors.id'), nullable=True)
    runner_up_id = Column(Integer, ForeignKey('competitors.id'), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('session_id', 'type', 'bracket_number'),
        CheckConstraint('current_size >= 0 AND current_size <= capacity', name='ck_bracket_size'),
        _enum_check('type', BracketType),
        _enum_check('status', BracketStatus),
    )

    def __repr__(self):
        return f"<Bracket(id={self.id}, type='{self.type}', number={self.bracket_number}, status='{self.status}')>"

class BracketEntry(Base):
    __tablename__ = 'bracket_entries'

    id = Column(Integer, primary_key=True)
    bracket_id = Column(Integer, ForeignKey('brackets.id'), nullable=False, index=True)
    competitor_id = Column(Integer, ForeignKey('competitors.id'), nullable=False)
    position = Column(Integer, nullable=False)

    # Scores
    games = Column(JSON, nullable=False, default=lambda: [0] * BracketConstants.GAMES_PER_ENTRY)
    total_score = Column(Integer, nullable=False, default=0)
    final_position = Column(Integer, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('bracket_id', 'position'),
        CheckConstraint('position >= 1 AND position <= 8', name='ck_entry_position'),
    )

    def __repr__(self):
        return f"<BracketEntry(id={self.id}, bracket={self.bracket_id}, position={self.position}, total={self.total_score})>"

class SideGameEntry(Base):
    __tablename__ = 'side_game_entries'

    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey('sessions.id'), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    competitor_id = Column(Integer, ForeignKey('competitors.id'), nullable=False)
    game_number = Column(Integer, nullable=False, default=1)

    # Scores and results
    score = Column(Integer, nullable=False, default=0)
    handicap_score = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=True)
    payout = Column(Float, nullable=False, default=0)
    is_eliminated = Column(Boolean, nullable=False, default=False)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('session_id', 'competitor_id', 'type', 'game_number'),
        CheckConstraint('payout >= 0', name='ck_payout_positive'),
        _enum_check('type', SideGameType),
    )

    def __repr__(self):
        return f"<SideGameEntry(id={self.id}, type='{self.type}', game={self.game_number}, score={self.score})>"
