"""
Competitor Operations Module

Read-only lookups over sessions and their registered competitors.
Registration itself happens outside the engine; this module only reads
what registration stored.

Key functionality:
- get_session(): Load and validate one session
- get_eligible_competitors(): Competitors enrolled in a bracket type or side game
- get_session_stats(): Enrollment counts per category
"""

from typing import List, Union

from bowling_brackets.constants import SideGameConstants
from bowling_brackets.data_models.records import Competitor, SessionInfo
from bowling_brackets.data_models.results import OperationResult, SessionStats
from bowling_brackets.database.models import BracketType, SideGameType
from bowling_brackets.database.record_store import COMPETITORS, SESSIONS, Filter, eq
from bowling_brackets.services.base import BaseService
from bowling_brackets.utils.exceptions import BracketEngineException, ValidationError
from bowling_brackets.utils.handicap import round_half_up
from bowling_brackets.utils.logger import setup_logger
from bowling_brackets.utils.validation import require_id

logger = setup_logger(__name__)


def category_filter(category: Union[BracketType, SideGameType, str]) -> Filter:
    """Store predicate selecting competitors enrolled in a category."""
    value = getattr(category, 'value', category)
    if value in SideGameConstants.BRACKET_COUNT_FIELDS:
        return Filter(SideGameConstants.BRACKET_COUNT_FIELDS[value], '>', 0)
    if value in SideGameConstants.CATEGORY_FLAGS:
        return eq(SideGameConstants.CATEGORY_FLAGS[value], True)
    raise ValidationError('category', f"unknown category {value!r}")


class CompetitorOperations(BaseService):
    """
    Lookups over sessions and competitors used by the other engine components.
    
    The ``load_*`` methods raise BracketEngineException subclasses and are meant
    for composition inside other operations; the ``get_*`` methods wrap them
    in OperationResult for direct callers.
    """
    
    def __init__(self, store, **retry_options):
        super().__init__(store, **retry_options)
        self.logger = logger
    
    async def load_session(self, session_id: int, store=None) -> SessionInfo:
        store = store or self.store
        record = await self.execute_with_retry(
            lambda: store.get_one(SESSIONS, session_id),
            f"load session {session_id}"
        )
        return SessionInfo.from_record(record)
    
    async def load_competitor(self, competitor_id: int, store=None) -> Competitor:
        store = store or self.store
        record = await self.execute_with_retry(
            lambda: store.get_one(COMPETITORS, competitor_id),
            f"load competitor {competitor_id}"
        )
        return Competitor.from_record(record)
    
    async def load_competitors(self, session_id: int, category=None, store=None) -> List[Competitor]:
        """Competitors of a session in registration order, optionally filtered by category."""
        store = store or self.store
        where = [eq('session_id', session_id)]
        if category is not None:
            where.append(category_filter(category))
        records = await self.execute_with_retry(
            lambda: store.query(COMPETITORS, where=where, order_by='id'),
            f"load competitors for session {session_id}"
        )
        return [Competitor.from_record(record) for record in records]
    
    async def get_session(self, session_id: int) -> OperationResult:
        require_id(session_id, 'session_id')
        try:
            return OperationResult.ok(await self.load_session(session_id))
        except BracketEngineException as e:
            self.logger.warning(f"Get session {session_id} failed: {e}")
            return OperationResult.failure(e)
    
    async def get_eligible_competitors(self, session_id: int, category) -> OperationResult:
        require_id(session_id, 'session_id')
        try:
            competitors = await self.load_competitors(session_id, category)
            self.logger.debug(f"Session {session_id} has {len(competitors)} competitors in {category}")
            return OperationResult.ok(competitors)
        except BracketEngineException as e:
            self.logger.warning(f"Get eligible competitors for session {session_id} failed: {e}")
            return OperationResult.failure(e)
    
    async def get_session_stats(self, session_id: int) -> OperationResult:
        """Enrollment statistics for a session's competitors."""
        require_id(session_id, 'session_id')
        try:
            competitors = await self.load_competitors(session_id)
        except BracketEngineException as e:
            self.logger.warning(f"Get session stats for {session_id} failed: {e}")
            return OperationResult.failure(e)
        
        total = len(competitors)
        stats = SessionStats(
            total=total,
            scratch_entries=sum(c.scratch_brackets for c in competitors),
            handicap_entries=sum(c.handicap_brackets for c in competitors),
            high_game_scratch=sum(1 for c in competitors if c.high_game_scratch),
            high_game_handicap=sum(1 for c in competitors if c.high_game_handicap),
            eliminator=sum(1 for c in competitors if c.eliminator),
            average_score=round_half_up(sum(c.average for c in competitors) / total) if total else 0,
            lanes_used=sorted({c.lane for c in competitors if c.lane}),
        )
        return OperationResult.ok(stats)
