"""
Ranking & Progression Module

Finalizes bracket standings once every entry in a bracket has been scored.

A bracket here is a pool of eight ranked directly by aggregate score: there
are no head-to-head rounds. Scratch brackets rank by three-game total,
handicap brackets by total plus the competitor's handicap. Equal keys are
broken by the lower seeded position.
"""

from typing import List, Sequence, Union

from bowling_brackets.constants import BracketConstants
from bowling_brackets.data_models.records import Bracket, BracketEntry
from bowling_brackets.data_models.results import OperationResult, ProgressSummary
from bowling_brackets.database.models import BracketStatus, BracketType
from bowling_brackets.database.record_store import BRACKET_ENTRIES, BRACKETS
from bowling_brackets.operations.bracket_builder import BracketBuilder
from bowling_brackets.services.base import BaseService
from bowling_brackets.services.locks import KeyedLockRegistry
from bowling_brackets.utils.exceptions import BracketEngineException, NoBracketsError
from bowling_brackets.utils.handicap import bracket_rank_key
from bowling_brackets.utils.logger import setup_logger
from bowling_brackets.utils.validation import require_id, validate_bracket_type

logger = setup_logger(__name__)


def entry_rank_key(entry: BracketEntry, bracket_type: BracketType) -> int:
    handicap = entry.competitor.handicap if entry.competitor else 0
    return bracket_rank_key(entry.total_score, bracket_type, handicap)


def rank_entries(entries: Sequence[BracketEntry], bracket_type: BracketType) -> List[BracketEntry]:
    """Entries best first: rank key descending, then seeded position ascending."""
    return sorted(entries, key=lambda e: (-entry_rank_key(e, bracket_type), e.position))


def is_ready(entries: Sequence[BracketEntry]) -> bool:
    """A bracket is ready once it has entries and every one of them is scored."""
    return bool(entries) and all(entry.is_scored for entry in entries)


class ProgressionEngine(BaseService):
    """Business logic for ranking brackets and naming winners."""

    def __init__(self, store, builder: BracketBuilder = None,
                 locks: KeyedLockRegistry = None, **retry_options):
        super().__init__(store, **retry_options)
        self.locks = locks or KeyedLockRegistry()
        self.builder = builder or BracketBuilder(store, locks=self.locks, **retry_options)
        self.logger = logger

    async def progress(self, session_id: int, bracket_type: Union[BracketType, str],
                       timeout: float = None) -> OperationResult:
        """
        Finalize every ready, non-completed bracket of a session and type.

        Brackets with an unscored entry are skipped without error. Brackets
        with fewer than two entries get final positions but stay incomplete.

        Returns:
            OperationResult with a ProgressSummary (progressed vs considered)
        """
        require_id(session_id, 'session_id')
        try:
            bracket_type = validate_bracket_type(bracket_type)
            async with self.locks.hold('progress', session_id, bracket_type.value):
                summary = await self.run_with_deadline(
                    self._progress(session_id, bracket_type),
                    timeout,
                    f"progress {bracket_type.value} brackets for session {session_id}"
                )
        except BracketEngineException as e:
            self.logger.warning(f"Progress brackets for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(
            f"Progressed {summary.progressed_brackets} of {summary.total_brackets} "
            f"{bracket_type.value} brackets for session {session_id}"
        )
        return OperationResult.ok(summary)

    async def _progress(self, session_id: int, bracket_type: BracketType) -> ProgressSummary:
        brackets = await self.builder.load_brackets(session_id, bracket_type)
        if not brackets:
            raise NoBracketsError(session_id, bracket_type.value)

        pending = [bracket for bracket in brackets if not bracket.is_completed]
        progressed = 0
        skipped = []
        for bracket in pending:
            if await self._progress_bracket(bracket, bracket_type):
                progressed += 1
            else:
                skipped.append(bracket.bracket_number)

        return ProgressSummary(
            progressed_brackets=progressed,
            total_brackets=len(pending),
            skipped_bracket_numbers=skipped
        )

    async def _progress_bracket(self, bracket: Bracket, bracket_type: BracketType) -> bool:
        entries = await self.builder.load_entries(bracket.id)
        if not is_ready(entries):
            self.logger.info(f"Bracket {bracket.bracket_number} not ready - missing scores")
            return False

        ranked = rank_entries(entries, bracket_type)
        completes = len(ranked) >= BracketConstants.MIN_ENTRIES_TO_COMPLETE

        async def commit() -> bool:
            async with self.store.transaction() as store:
                current = Bracket.from_record(await store.get_one(BRACKETS, bracket.id))
                if current.is_completed:
                    return False
                for place, entry in enumerate(ranked, start=1):
                    await store.update(BRACKET_ENTRIES, entry.id, {'final_position': place})
                if completes:
                    await store.update(BRACKETS, bracket.id, {
                        'status': BracketStatus.COMPLETED,
                        'winner_id': ranked[0].competitor_id,
                        'runner_up_id': ranked[1].competitor_id,
                    })
            return completes

        completed = await self.execute_with_retry(commit, f"finalize bracket {bracket.id}")
        if completed:
            self.logger.info(
                f"Bracket {bracket.bracket_number} completed: winner {ranked[0].competitor_id}, "
                f"runner-up {ranked[1].competitor_id}"
            )
        else:
            self.logger.info(f"Bracket {bracket.bracket_number} ranked but left incomplete")
        return completed
