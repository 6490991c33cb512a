"""
Bracket Builder Module

This module creates bracket containers for a session and seeds competitors
into their numbered positions.

Key functionality:
- generate(): Partition the eligible pool, shuffle it and seed complete brackets
- create_bracket(): Open an empty bracket for incremental seeding
- add_one(): Seat a single competitor into an open position of a bracket
- get_brackets() / get_entries(): Read brackets and their seated entries

Bulk generation is staged first (bracket numbers, shuffled chunks, positions)
and then committed inside one store transaction, so a failure half-way
leaves no partial brackets behind on stores that support transactions.
"""

import random
from typing import List, Optional, Sequence, Union

from bowling_brackets.constants import BracketConstants
from bowling_brackets.data_models.records import Bracket, BracketEntry, Competitor
from bowling_brackets.data_models.results import GenerateSummary, OperationResult
from bowling_brackets.database.models import BracketStatus, BracketType
from bowling_brackets.database.record_store import BRACKET_ENTRIES, BRACKETS, eq
from bowling_brackets.operations.competitor_operations import CompetitorOperations
from bowling_brackets.operations.partitioner import partition_pool
from bowling_brackets.services.base import BaseService
from bowling_brackets.services.locks import KeyedLockRegistry
from bowling_brackets.utils.exceptions import (
    BracketEngineException, BracketFullError, DuplicateEntryError,
    PositionTakenError, ValidationError
)
from bowling_brackets.utils.logger import setup_logger
from bowling_brackets.utils.validation import require_id, validate_bracket_type, validate_position

logger = setup_logger(__name__)


class BracketBuilder(BaseService):
    """
    Business logic for bracket creation and seeding.

    The shuffle uses an injectable ``random.Random`` so that seeding can be
    reproduced under test; production callers leave it unseeded.
    """

    def __init__(self, store, competitors: CompetitorOperations = None,
                 locks: KeyedLockRegistry = None, rng: random.Random = None, **retry_options):
        super().__init__(store, **retry_options)
        self.competitors = competitors or CompetitorOperations(store, **retry_options)
        self.locks = locks or KeyedLockRegistry()
        self.rng = rng or random.Random()
        self.logger = logger

    # Bulk generation

    async def generate(
        self,
        session_id: int,
        bracket_type: Union[BracketType, str],
        pool: Optional[Sequence[Union[Competitor, int]]] = None,
        rng: random.Random = None,
        timeout: float = None
    ) -> OperationResult:
        """
        Generate complete brackets for a session and bracket type.

        Args:
            session_id: Session to generate brackets for
            bracket_type: 'scratch' or 'handicap'
            pool: Eligible competitors (or their ids) in registration order;
                loaded from the store when omitted
            rng: Randomness source for this call, overriding the builder's
            timeout: Deadline in seconds for the whole operation

        Returns:
            OperationResult with a GenerateSummary, or a failure carrying the
            partition shortfall/surplus
        """
        require_id(session_id, 'session_id')
        try:
            bracket_type = validate_bracket_type(bracket_type)
            async with self.locks.hold('generate', session_id, bracket_type.value):
                summary = await self.run_with_deadline(
                    self._generate(session_id, bracket_type, pool, rng or self.rng),
                    timeout,
                    f"generate {bracket_type.value} brackets for session {session_id}"
                )
        except BracketEngineException as e:
            self.logger.warning(f"Generate brackets for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(
            f"Generated {summary.brackets_created} {bracket_type.value} brackets "
            f"for session {session_id} ({summary.total_competitors} competitors)"
        )
        return OperationResult.ok(summary)

    async def _generate(self, session_id: int, bracket_type: BracketType,
                        pool, rng: random.Random) -> GenerateSummary:
        await self.competitors.load_session(session_id)

        if pool is None:
            competitors = await self.competitors.load_competitors(session_id, bracket_type)
        else:
            competitors = await self._resolve_pool(session_id, bracket_type, pool)

        plan = partition_pool(competitors, BracketConstants.BRACKET_SIZE, bracket_type.value)
        first_number = await self._next_bracket_number(session_id, bracket_type)

        # Stage the whole seating before writing anything
        shuffled = list(plan.pool)
        rng.shuffle(shuffled)
        size = BracketConstants.BRACKET_SIZE
        seating = [shuffled[i:i + size] for i in range(0, len(shuffled), size)]

        brackets = await self.execute_with_retry(
            lambda: self._commit_seating(session_id, bracket_type, first_number, seating),
            f"commit {len(seating)} {bracket_type.value} brackets"
        )
        return GenerateSummary(
            brackets_created=len(brackets),
            total_competitors=len(shuffled),
            brackets=brackets
        )

    async def _resolve_pool(self, session_id: int, bracket_type: BracketType, pool) -> List[Competitor]:
        """Validate a caller-supplied pool against the session and bracket type."""
        resolved = []
        seen = set()
        for item in pool:
            competitor = item if isinstance(item, Competitor) else await self.competitors.load_competitor(
                require_id(item, 'competitor_id')
            )
            if competitor.id in seen:
                raise ValidationError('pool', f"competitor {competitor.id} appears more than once")
            if competitor.session_id != session_id:
                raise ValidationError('pool', f"competitor {competitor.id} is not registered in session {session_id}")
            if not competitor.is_eligible(bracket_type):
                raise ValidationError('pool', f"competitor {competitor.id} is not entered in {bracket_type.value} brackets")
            seen.add(competitor.id)
            resolved.append(competitor)
        return resolved

    async def _next_bracket_number(self, session_id: int, bracket_type: BracketType) -> int:
        existing = await self.execute_with_retry(
            lambda: self.store.query(
                BRACKETS,
                where=[eq('session_id', session_id), eq('type', bracket_type)],
                order_by='-bracket_number'
            ),
            f"load existing {bracket_type.value} brackets"
        )
        return existing[0]['bracket_number'] + 1 if existing else 1

    async def _commit_seating(self, session_id: int, bracket_type: BracketType,
                              first_number: int, seating: List[List[Competitor]]) -> List[Bracket]:
        async with self.store.transaction() as store:
            bracket_ids = []
            for index in range(len(seating)):
                record = await store.create(BRACKETS, {
                    'session_id': session_id,
                    'type': bracket_type,
                    'bracket_number': first_number + index,
                    'status': BracketStatus.FORMING,
                    'capacity': BracketConstants.BRACKET_SIZE,
                    'current_size': 0,
                    'winner_id': None,
                    'runner_up_id': None,
                })
                bracket_ids.append(record['id'])

            for bracket_id, chunk in zip(bracket_ids, seating):
                for offset, competitor in enumerate(chunk):
                    await self._seat(store, bracket_id, competitor.id, offset + 1)

            return [Bracket.from_record(await store.get_one(BRACKETS, bracket_id)) for bracket_id in bracket_ids]

    # Incremental seeding

    async def create_bracket(self, session_id: int, bracket_type: Union[BracketType, str]) -> OperationResult:
        """
        Open an empty bracket to be filled one seat at a time with add_one().

        The bracket takes the next number for the session and type, and starts
        forming with no entries.
        """
        require_id(session_id, 'session_id')
        try:
            bracket_type = validate_bracket_type(bracket_type)
            # Shares the generate scope so both never hand out the same number
            async with self.locks.hold('generate', session_id, bracket_type.value):
                await self.competitors.load_session(session_id)
                number = await self._next_bracket_number(session_id, bracket_type)
                record = await self.execute_with_retry(
                    lambda: self.store.create(BRACKETS, {
                        'session_id': session_id,
                        'type': bracket_type,
                        'bracket_number': number,
                        'status': BracketStatus.FORMING,
                        'capacity': BracketConstants.BRACKET_SIZE,
                        'current_size': 0,
                        'winner_id': None,
                        'runner_up_id': None,
                    }),
                    f"create {bracket_type.value} bracket {number}"
                )
        except BracketEngineException as e:
            self.logger.warning(f"Create bracket for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(f"Opened {bracket_type.value} bracket {number} for session {session_id}")
        return OperationResult.ok(Bracket.from_record(record))

    async def add_one(self, bracket_id: int, competitor_id: int, position: int) -> OperationResult:
        """
        Seat one competitor into a bracket outside bulk generation.

        Rejects an occupied position, a competitor already in the bracket,
        a competitor from another session, and any insertion into a full bracket.
        """
        require_id(bracket_id, 'bracket_id')
        require_id(competitor_id, 'competitor_id')
        try:
            position = validate_position(position)
            async with self.locks.hold('seat', bracket_id):
                competitor = await self.competitors.load_competitor(competitor_id)
                bracket = Bracket.from_record(await self.execute_with_retry(
                    lambda: self.store.get_one(BRACKETS, bracket_id),
                    f"load bracket {bracket_id}"
                ))
                if competitor.session_id != bracket.session_id:
                    raise ValidationError(
                        'competitor_id',
                        f"competitor {competitor_id} is not registered in session {bracket.session_id}"
                    )
                entry = await self.execute_with_retry(
                    lambda: self._seat_in_transaction(bracket_id, competitor_id, position),
                    f"seat competitor {competitor_id} in bracket {bracket_id}"
                )
        except BracketEngineException as e:
            self.logger.warning(f"Add competitor {competitor_id} to bracket {bracket_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(f"Seated competitor {competitor_id} in bracket {bracket_id} at position {position}")
        return OperationResult.ok(entry)

    async def _seat_in_transaction(self, bracket_id: int, competitor_id: int, position: int) -> BracketEntry:
        async with self.store.transaction() as store:
            return await self._seat(store, bracket_id, competitor_id, position)

    async def _seat(self, store, bracket_id: int, competitor_id: int, position: int) -> BracketEntry:
        """Create one entry and bump the bracket's size, re-reading the bracket first."""
        bracket = Bracket.from_record(await store.get_one(BRACKETS, bracket_id))
        if bracket.is_completed:
            raise ValidationError('bracket_id', f"bracket {bracket_id} is already completed")
        if bracket.is_full:
            raise BracketFullError(bracket_id, bracket.capacity)

        entries = await store.query(BRACKET_ENTRIES, where=[eq('bracket_id', bracket_id)])
        if any(e['position'] == position for e in entries):
            raise PositionTakenError(bracket_id, position)
        if any(e['competitor_id'] == competitor_id for e in entries):
            raise DuplicateEntryError(bracket_id, competitor_id)

        record = await store.create(BRACKET_ENTRIES, {
            'bracket_id': bracket_id,
            'competitor_id': competitor_id,
            'position': position,
            'games': [0] * BracketConstants.GAMES_PER_ENTRY,
            'total_score': 0,
            'final_position': None,
        })

        new_size = len(entries) + 1
        await store.update(BRACKETS, bracket_id, {
            'current_size': new_size,
            'status': BracketStatus.FULL if new_size >= bracket.capacity else BracketStatus.FORMING,
        })
        return BracketEntry.from_record(record)

    # Reads

    async def load_brackets(self, session_id: int, bracket_type: BracketType = None) -> List[Bracket]:
        where = [eq('session_id', session_id)]
        if bracket_type is not None:
            where.append(eq('type', bracket_type))
        records = await self.execute_with_retry(
            lambda: self.store.query(BRACKETS, where=where, order_by='bracket_number',
                                     expand=('winner', 'runner_up')),
            f"load brackets for session {session_id}"
        )
        return [Bracket.from_record(record) for record in records]

    async def load_entries(self, bracket_id: int, store=None) -> List[BracketEntry]:
        store = store or self.store
        records = await self.execute_with_retry(
            lambda: store.query(BRACKET_ENTRIES, where=[eq('bracket_id', bracket_id)],
                                order_by='position', expand=('competitor',)),
            f"load entries for bracket {bracket_id}"
        )
        return [BracketEntry.from_record(record) for record in records]

    async def get_brackets(self, session_id: int, bracket_type=None) -> OperationResult:
        """Brackets of a session by number, with winner and runner-up expanded."""
        require_id(session_id, 'session_id')
        try:
            if bracket_type is not None:
                bracket_type = validate_bracket_type(bracket_type)
            brackets = await self.load_brackets(session_id, bracket_type)
        except BracketEngineException as e:
            self.logger.warning(f"Get brackets for session {session_id} failed: {e}")
            return OperationResult.failure(e)
        self.logger.debug(f"Retrieved {len(brackets)} brackets for session {session_id}")
        return OperationResult.ok(brackets)

    async def get_entries(self, bracket_id: int) -> OperationResult:
        """Entries of a bracket by position, with the competitor expanded."""
        require_id(bracket_id, 'bracket_id')
        try:
            entries = await self.load_entries(bracket_id)
        except BracketEngineException as e:
            self.logger.warning(f"Get entries for bracket {bracket_id} failed: {e}")
            return OperationResult.failure(e)
        return OperationResult.ok(entries)
