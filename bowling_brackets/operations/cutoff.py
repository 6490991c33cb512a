"""
Eliminator Cutoff Module

Runs the eliminator side game: each game the cut line is the rounded mean
score of the competitors still standing, and everyone below it is out.
Because the mean is taken only over active entries, the line tightens as
the field shrinks from game to game.
"""

from decimal import Decimal
from typing import Sequence

from bowling_brackets.data_models.records import SideGameEntry
from bowling_brackets.data_models.results import CutoffReport, EliminationReport, OperationResult
from bowling_brackets.database.models import SideGameType
from bowling_brackets.database.record_store import SIDE_GAME_ENTRIES, eq
from bowling_brackets.services.base import BaseService
from bowling_brackets.services.locks import KeyedLockRegistry
from bowling_brackets.utils.exceptions import BracketEngineException, NoEntriesError
from bowling_brackets.utils.handicap import round_half_up
from bowling_brackets.utils.logger import setup_logger
from bowling_brackets.utils.validation import require_id, validate_cutoff, validate_game_number

logger = setup_logger(__name__)


def compute_cutoff(scores: Sequence[int]) -> int:
    """Mean of the scores, rounded half-up."""
    return round_half_up(Decimal(sum(scores)) / Decimal(len(scores)))


def _eliminator_filters(session_id: int, game_number: int):
    return [
        eq('session_id', session_id),
        eq('type', SideGameType.ELIMINATOR),
        eq('game_number', game_number),
    ]


class CutoffEngine(BaseService):
    """Business logic for eliminator cut lines and eliminations."""

    def __init__(self, store, locks: KeyedLockRegistry = None, **retry_options):
        super().__init__(store, **retry_options)
        self.locks = locks or KeyedLockRegistry()
        self.logger = logger

    async def calculate_cutoff(self, session_id: int, game_number: int) -> OperationResult:
        """
        Compute the cut line for one game from entries not yet eliminated.

        Returns:
            OperationResult with a CutoffReport, or a no_entries failure
        """
        require_id(session_id, 'session_id')
        try:
            game_number = validate_game_number(game_number)
            records = await self.execute_with_retry(
                lambda: self.store.query(
                    SIDE_GAME_ENTRIES,
                    where=_eliminator_filters(session_id, game_number) + [eq('is_eliminated', False)]
                ),
                f"load eliminator entries for session {session_id}, game {game_number}"
            )
            if not records:
                raise NoEntriesError(session_id, game_number)
        except BracketEngineException as e:
            self.logger.warning(f"Calculate cutoff for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        entries = [SideGameEntry.from_record(record) for record in records]
        cutoff = compute_cutoff([entry.score for entry in entries])
        report = CutoffReport(
            cutoff=cutoff,
            total_competitors=len(entries),
            game_number=game_number,
            above_cutoff=sum(1 for entry in entries if entry.score >= cutoff),
            below_cutoff=sum(1 for entry in entries if entry.score < cutoff),
        )
        self.logger.info(
            f"Calculated eliminator cutoff: {cutoff} (from {len(entries)} competitors) "
            f"for session {session_id}, game {game_number}"
        )
        return OperationResult.ok(report)

    async def eliminate(self, session_id: int, game_number: int, cutoff: int,
                        timeout: float = None) -> OperationResult:
        """
        Mark every active entry scoring below the cutoff as eliminated.

        Idempotent: repeating the call with the same or a lower cutoff cuts
        nobody new.

        Returns:
            OperationResult with an EliminationReport
        """
        require_id(session_id, 'session_id')
        try:
            game_number = validate_game_number(game_number)
            cutoff = validate_cutoff(cutoff)
            async with self.locks.hold('eliminate', session_id, game_number, SideGameType.ELIMINATOR.value):
                eliminated, remaining = await self.run_with_deadline(
                    self.execute_with_retry(
                        lambda: self._commit_eliminations(session_id, game_number, cutoff),
                        f"eliminate below {cutoff} for session {session_id}, game {game_number}"
                    ),
                    timeout,
                    f"eliminate for session {session_id}, game {game_number}"
                )
        except BracketEngineException as e:
            self.logger.warning(f"Eliminate for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(
            f"Eliminated {eliminated} competitors below cutoff of {cutoff} "
            f"({remaining} remaining) for session {session_id}, game {game_number}"
        )
        return OperationResult.ok(EliminationReport(
            eliminated_count=eliminated,
            remaining_count=remaining,
            cutoff=cutoff,
            game_number=game_number
        ))

    async def _commit_eliminations(self, session_id: int, game_number: int, cutoff: int):
        async with self.store.transaction() as store:
            # Already-eliminated entries are loaded too so the remaining count is exact
            records = await store.query(SIDE_GAME_ENTRIES, where=_eliminator_filters(session_id, game_number))
            entries = [SideGameEntry.from_record(record) for record in records]
            cut = [entry for entry in entries if not entry.is_eliminated and entry.score < cutoff]
            for entry in cut:
                await store.update(SIDE_GAME_ENTRIES, entry.id, {'is_eliminated': True})
            active = sum(1 for entry in entries if not entry.is_eliminated)
        return len(cut), active - len(cut)
