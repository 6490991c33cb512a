"""
Bracket engine facade.

Wires every engine component to one record store and one lock registry so
that callers (a desktop front end, a web API, a script) deal with a single
object. The transport that delivers calls here is not part of the engine.
"""

import random
from typing import Optional

from bowling_brackets.config import Config
from bowling_brackets.database.database import Database
from bowling_brackets.database.record_store import RecordStore, SQLAlchemyRecordStore
from bowling_brackets.operations.bracket_builder import BracketBuilder
from bowling_brackets.operations.competitor_operations import CompetitorOperations
from bowling_brackets.operations.cutoff import CutoffEngine
from bowling_brackets.operations.progression import ProgressionEngine
from bowling_brackets.operations.score_ledger import ScoreLedger
from bowling_brackets.services.locks import KeyedLockRegistry
from bowling_brackets.utils.logger import setup_logger

class BracketEngine:
    """Entry point exposing every bracket and side-game operation."""
    
    def __init__(self, store: RecordStore, rng: random.Random = None, **retry_options):
        self.logger = setup_logger(__name__)
        self.store = store
        self.database: Optional[Database] = None
        self.locks = KeyedLockRegistry(redis_url=Config.REDIS_URL)
        
        self.competitors = CompetitorOperations(store, **retry_options)
        self.builder = BracketBuilder(store, self.competitors, self.locks, rng, **retry_options)
        self.ledger = ScoreLedger(store, self.competitors, self.locks, **retry_options)
        self.progression = ProgressionEngine(store, self.builder, self.locks, **retry_options)
        self.cutoff = CutoffEngine(store, self.locks, **retry_options)
    
    @classmethod
    async def connect(cls, database_url: str = None, rng: random.Random = None, **retry_options) -> 'BracketEngine':
        """Create an engine backed by the SQL database at database_url."""
        Config.validate()
        database = Database(database_url)
        await database.initialize()
        engine = cls(SQLAlchemyRecordStore(database), rng=rng, **retry_options)
        engine.database = database
        engine.logger.info("Bracket engine ready")
        return engine
    
    async def close(self):
        await self.locks.close()
        if self.database:
            await self.database.close()
    
    # Bracket Builder
    
    async def generate(self, session_id, bracket_type, pool=None, rng=None, timeout=None):
        return await self.builder.generate(session_id, bracket_type, pool, rng, timeout)
    
    async def create_bracket(self, session_id, bracket_type):
        return await self.builder.create_bracket(session_id, bracket_type)
    
    async def add_one(self, bracket_id, competitor_id, position):
        return await self.builder.add_one(bracket_id, competitor_id, position)
    
    async def get_brackets(self, session_id, bracket_type=None):
        return await self.builder.get_brackets(session_id, bracket_type)
    
    async def get_entries(self, bracket_id):
        return await self.builder.get_entries(bracket_id)
    
    # Score Ledger
    
    async def record_bracket_scores(self, entry_id, games):
        return await self.ledger.record_bracket_scores(entry_id, games)
    
    async def record_side_game_scores(self, session_id, game_number, scores, timeout=None):
        return await self.ledger.record_side_game_scores(session_id, game_number, scores, timeout)
    
    async def record_bracket_sheet(self, bracket_id, game_number, sheet, timeout=None):
        return await self.ledger.record_bracket_sheet(bracket_id, game_number, sheet, timeout)
    
    async def update_side_game_entry(self, entry_id, position=None, payout=None):
        return await self.ledger.update_side_game_entry(entry_id, position, payout)
    
    async def delete_side_game_entry(self, entry_id):
        return await self.ledger.delete_side_game_entry(entry_id)
    
    async def list_side_game_entries(self, session_id, side_game_type=None, game_number=None):
        return await self.ledger.list_side_game_entries(session_id, side_game_type, game_number)
    
    # Ranking & Progression
    
    async def progress(self, session_id, bracket_type, timeout=None):
        return await self.progression.progress(session_id, bracket_type, timeout)
    
    # Eliminator
    
    async def calculate_cutoff(self, session_id, game_number):
        return await self.cutoff.calculate_cutoff(session_id, game_number)
    
    async def eliminate(self, session_id, game_number, cutoff, timeout=None):
        return await self.cutoff.eliminate(session_id, game_number, cutoff, timeout)
    
    # Competitors
    
    async def get_session_stats(self, session_id):
        return await self.competitors.get_session_stats(session_id)
