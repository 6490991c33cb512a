"""
Score Ledger Module

Records per-game scores for bracket entries and side-game entries.

Key functionality:
- record_bracket_scores(): Store one entry's three games and their total
- record_side_game_scores(): Upsert side-game scores for one game number
- record_bracket_sheet(): Score a whole bracket and derive its side-game scores
- update_side_game_entry() / delete_side_game_entry(): Place, pay out or remove an entry
- list_side_game_entries(): Side-game standings for a session

Side-game entries are keyed by (session, competitor, type, game number).
Re-submitting a score overwrites the stored one; the elimination flag is
never touched by a score write.
"""

from typing import Dict, Iterable, List, Sequence, Set

from bowling_brackets.constants import BracketConstants
from bowling_brackets.data_models.records import BracketEntry, Competitor, SideGameEntry
from bowling_brackets.data_models.results import OperationResult, ScoreBatchSummary, SheetSummary
from bowling_brackets.database.models import SideGameType
from bowling_brackets.database.record_store import (
    BRACKET_ENTRIES, BRACKETS, SIDE_GAME_ENTRIES, Filter, eq
)
from bowling_brackets.operations.competitor_operations import CompetitorOperations
from bowling_brackets.services.base import BaseService
from bowling_brackets.services.locks import KeyedLockRegistry
from bowling_brackets.utils.exceptions import BracketEngineException, ValidationError
from bowling_brackets.utils.handicap import side_game_handicap_score
from bowling_brackets.utils.logger import setup_logger
from bowling_brackets.utils.validation import (
    SideGameScore, parse_side_game_score, require_id, validate_game_number,
    validate_games, validate_payout, validate_side_game_type, validate_standing
)

logger = setup_logger(__name__)


def build_side_game_scores(competitors: Iterable[Competitor], game_scores: Dict[int, int],
                           eliminated_ids: Set[int] = frozenset()) -> List[SideGameScore]:
    """
    Turn one game's scores into side-game scores using each competitor's flags.

    Args:
        competitors: Competitors whose flags decide their side games
        game_scores: Score bowled this game, by competitor id
        eliminated_ids: Competitors already cut from the eliminator

    Returns:
        One SideGameScore per (competitor, enrolled side game)
    """
    scores = []
    for competitor in competitors:
        if competitor.id not in game_scores:
            continue
        score = game_scores[competitor.id]
        if competitor.high_game_scratch:
            scores.append(SideGameScore(competitor.id, SideGameType.HIGH_GAME_SCRATCH, score))
        if competitor.high_game_handicap:
            scores.append(SideGameScore(competitor.id, SideGameType.HIGH_GAME_HANDICAP, score))
        if competitor.eliminator and competitor.id not in eliminated_ids:
            scores.append(SideGameScore(competitor.id, SideGameType.ELIMINATOR, score))
    return scores


class ScoreLedger(BaseService):
    """Business logic for recording bracket and side-game scores."""

    def __init__(self, store, competitors: CompetitorOperations = None,
                 locks: KeyedLockRegistry = None, **retry_options):
        super().__init__(store, **retry_options)
        self.competitors = competitors or CompetitorOperations(store, **retry_options)
        self.locks = locks or KeyedLockRegistry()
        self.logger = logger

    # Bracket scores

    async def record_bracket_scores(self, entry_id: int, games: Sequence[int]) -> OperationResult:
        """
        Store three game scores for a bracket entry.

        Idempotent: submitting the same games again stores the same state.
        """
        require_id(entry_id, 'entry_id')
        try:
            games = validate_games(games)
            record = await self.execute_with_retry(
                lambda: self.store.update(BRACKET_ENTRIES, entry_id, {
                    'games': games,
                    'total_score': sum(games),
                }),
                f"record scores for entry {entry_id}"
            )
        except BracketEngineException as e:
            self.logger.warning(f"Record scores for entry {entry_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(f"Recorded games {games} (total {sum(games)}) for entry {entry_id}")
        return OperationResult.ok(BracketEntry.from_record(record))

    # Side-game scores

    async def record_side_game_scores(self, session_id: int, game_number: int,
                                      scores: Sequence, timeout: float = None) -> OperationResult:
        """
        Upsert side-game scores for one game of a session.

        Args:
            session_id: Session the scores belong to
            game_number: 1-based game number
            scores: SideGameScore values, (competitor_id, type, score) tuples or dicts
            timeout: Deadline in seconds for the batch

        Returns:
            OperationResult with a ScoreBatchSummary
        """
        require_id(session_id, 'session_id')
        try:
            game_number = validate_game_number(game_number)
            if not isinstance(scores, (list, tuple)):
                raise ValidationError('scores', "a list of scores is required")
            parsed = [parse_side_game_score(item) for item in scores]
            await self.competitors.load_session(session_id)
            summary = await self.run_with_deadline(
                self._record_side_games(session_id, game_number, parsed),
                timeout,
                f"record side-game scores for session {session_id}, game {game_number}"
            )
        except BracketEngineException as e:
            self.logger.warning(f"Record side-game scores for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(
            f"Processed {summary.processed_count} side-game scores for session {session_id}, "
            f"game {game_number} ({summary.created_count} new, {summary.updated_count} updated)"
        )
        return OperationResult.ok(summary)

    async def _record_side_games(self, session_id: int, game_number: int,
                                 scores: List[SideGameScore]) -> ScoreBatchSummary:
        competitors = {}
        for score in scores:
            if score.competitor_id not in competitors:
                competitor = await self.competitors.load_competitor(score.competitor_id)
                if competitor.session_id != session_id:
                    raise ValidationError(
                        'competitor_id',
                        f"competitor {competitor.id} is not registered in session {session_id}"
                    )
                competitors[competitor.id] = competitor

        async with self.locks.hold('side_scores', session_id, game_number):
            return await self.execute_with_retry(
                lambda: self._commit_side_games(session_id, game_number, scores, competitors),
                f"commit side-game scores for session {session_id}, game {game_number}"
            )

    async def _commit_side_games(self, session_id: int, game_number: int,
                                 scores: List[SideGameScore], competitors: Dict[int, Competitor]) -> ScoreBatchSummary:
        created = updated = 0
        async with self.store.transaction() as store:
            for score in scores:
                handicap_score = side_game_handicap_score(
                    score.score, score.type, competitors[score.competitor_id].handicap
                )
                existing = await store.query(SIDE_GAME_ENTRIES, where=[
                    eq('session_id', session_id),
                    eq('competitor_id', score.competitor_id),
                    eq('type', score.type),
                    eq('game_number', game_number),
                ])
                if existing:
                    await store.update(SIDE_GAME_ENTRIES, existing[0]['id'], {
                        'score': score.score,
                        'handicap_score': handicap_score,
                    })
                    updated += 1
                else:
                    await store.create(SIDE_GAME_ENTRIES, {
                        'session_id': session_id,
                        'type': score.type,
                        'competitor_id': score.competitor_id,
                        'game_number': game_number,
                        'score': score.score,
                        'handicap_score': handicap_score,
                        'position': None,
                        'payout': 0,
                        'is_eliminated': False,
                    })
                    created += 1
        return ScoreBatchSummary(
            processed_count=len(scores),
            created_count=created,
            updated_count=updated
        )

    # Whole-sheet scoring

    async def record_bracket_sheet(self, bracket_id: int, game_number: int,
                                   sheet: Dict[int, Sequence[int]], timeout: float = None) -> OperationResult:
        """
        Record the score sheet of one bracket and feed its side games.

        Every entry listed in ``sheet`` gets its three games stored. The score
        each competitor bowled in ``game_number`` is then recorded for every
        side game they are enrolled in, except that competitors already cut
        from the eliminator in an earlier game get no new eliminator entry.

        Args:
            bracket_id: Bracket the sheet belongs to
            game_number: Which of the three games feeds the side games
            sheet: Three game scores by bracket entry id
            timeout: Deadline in seconds for the whole sheet
        """
        require_id(bracket_id, 'bracket_id')
        try:
            game_number = validate_game_number(game_number)
            if game_number > BracketConstants.GAMES_PER_ENTRY:
                raise ValidationError(
                    'game_number', f"a bracket sheet has only {BracketConstants.GAMES_PER_ENTRY} games"
                )
            summary = await self.run_with_deadline(
                self._record_sheet(bracket_id, game_number, sheet),
                timeout,
                f"record sheet for bracket {bracket_id}"
            )
        except BracketEngineException as e:
            self.logger.warning(f"Record sheet for bracket {bracket_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(
            f"Recorded sheet for bracket {bracket_id}: {summary.entries_updated} entries, "
            f"{summary.side_games.processed_count} side-game scores"
        )
        return OperationResult.ok(summary)

    async def _record_sheet(self, bracket_id: int, game_number: int,
                            sheet: Dict[int, Sequence[int]]) -> SheetSummary:
        if not isinstance(sheet, dict):
            raise ValidationError('sheet', "scores by entry id are required")
        bracket = await self.execute_with_retry(
            lambda: self.store.get_one(BRACKETS, bracket_id),
            f"load bracket {bracket_id}"
        )
        session_id = bracket['session_id']
        records = await self.execute_with_retry(
            lambda: self.store.query(BRACKET_ENTRIES, where=[eq('bracket_id', bracket_id)],
                                     order_by='position', expand=('competitor',)),
            f"load entries for bracket {bracket_id}"
        )
        entries = {record['id']: BracketEntry.from_record(record) for record in records}

        validated = {}
        for entry_id, games in sheet.items():
            if entry_id not in entries:
                raise ValidationError('sheet', f"entry {entry_id} is not in bracket {bracket_id}")
            validated[entry_id] = validate_games(games)

        async def commit_games():
            async with self.store.transaction() as store:
                for entry_id, games in validated.items():
                    await store.update(BRACKET_ENTRIES, entry_id, {
                        'games': games,
                        'total_score': sum(games),
                    })

        await self.execute_with_retry(commit_games, f"commit sheet for bracket {bracket_id}")

        eliminated_ids = await self._eliminated_before(session_id, game_number)
        game_scores = {
            entries[entry_id].competitor_id: games[game_number - 1]
            for entry_id, games in validated.items()
        }
        side_scores = build_side_game_scores(
            [entries[entry_id].competitor for entry_id in validated if entries[entry_id].competitor],
            game_scores,
            eliminated_ids
        )
        side_summary = await self._record_side_games(session_id, game_number, side_scores)
        return SheetSummary(entries_updated=len(validated), side_games=side_summary)

    async def _eliminated_before(self, session_id: int, game_number: int) -> Set[int]:
        """Competitors cut from the eliminator in any game before game_number."""
        if game_number <= 1:
            return set()
        records = await self.execute_with_retry(
            lambda: self.store.query(SIDE_GAME_ENTRIES, where=[
                eq('session_id', session_id),
                eq('type', SideGameType.ELIMINATOR),
                eq('is_eliminated', True),
                Filter('game_number', '<', game_number),
            ]),
            f"load eliminated competitors for session {session_id}"
        )
        return {record['competitor_id'] for record in records}

    # Side-game results

    async def update_side_game_entry(self, entry_id: int, position: int = None,
                                     payout: float = None) -> OperationResult:
        """
        Record the finishing place and/or payout of one side-game entry.

        Only the fields passed are written. Scores and the elimination flag
        are left as they are.
        """
        require_id(entry_id, 'entry_id')
        try:
            fields = {}
            if position is not None:
                fields['position'] = validate_standing(position)
            if payout is not None:
                fields['payout'] = validate_payout(payout)
            if not fields:
                raise ValidationError('entry', "a position or a payout is required")
            record = await self.execute_with_retry(
                lambda: self.store.update(SIDE_GAME_ENTRIES, entry_id, fields),
                f"update side-game entry {entry_id}"
            )
        except BracketEngineException as e:
            self.logger.warning(f"Update side-game entry {entry_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(f"Updated side-game entry {entry_id}: {fields}")
        return OperationResult.ok(SideGameEntry.from_record(record))

    async def delete_side_game_entry(self, entry_id: int) -> OperationResult:
        """Remove a side-game entry recorded by mistake."""
        require_id(entry_id, 'entry_id')
        try:
            await self.execute_with_retry(
                lambda: self.store.delete(SIDE_GAME_ENTRIES, entry_id),
                f"delete side-game entry {entry_id}"
            )
        except BracketEngineException as e:
            self.logger.warning(f"Delete side-game entry {entry_id} failed: {e}")
            return OperationResult.failure(e)

        self.logger.info(f"Deleted side-game entry {entry_id}")
        return OperationResult.ok()

    # Reads

    async def list_side_game_entries(self, session_id: int, side_game_type=None,
                                     game_number: int = None) -> OperationResult:
        """
        Side-game entries of a session in standings order.

        Eliminator entries sort by score; high-game entries by handicap score,
        then score, both descending.
        """
        require_id(session_id, 'session_id')
        try:
            where = [eq('session_id', session_id)]
            if side_game_type is not None:
                side_game_type = validate_side_game_type(side_game_type)
                where.append(eq('type', side_game_type))
            if game_number is not None:
                where.append(eq('game_number', validate_game_number(game_number)))

            by_score = side_game_type == SideGameType.ELIMINATOR
            records = await self.execute_with_retry(
                lambda: self.store.query(SIDE_GAME_ENTRIES, where=where,
                                         order_by='-score' if by_score else '-handicap_score',
                                         expand=('competitor',)),
                f"load side-game entries for session {session_id}"
            )
        except BracketEngineException as e:
            self.logger.warning(f"List side-game entries for session {session_id} failed: {e}")
            return OperationResult.failure(e)

        entries = [SideGameEntry.from_record(record) for record in records]
        if not by_score:
            entries.sort(key=lambda e: (-e.handicap_score, -e.score))
        return OperationResult.ok(entries)
