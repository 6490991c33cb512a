"""Tests for the eliminator cut line and eliminations"""

import asyncio

from bowling_brackets.database.record_store import SIDE_GAME_ENTRIES, eq
from bowling_brackets.operations.cutoff import compute_cutoff

from tests.support import EngineHarness, run


async def _eliminator_field(h, scores, game_number=1):
    session_id = await h.create_session()
    for score in scores:
        competitor_id = await h.add_competitor(session_id, eliminator=True)
        await h.eliminator_entry(session_id, competitor_id, score, game_number)
    return session_id


def test_compute_cutoff_rounds_half_up():
    assert compute_cutoff([100, 150, 200, 250]) == 175
    assert compute_cutoff([175, 176]) == 176
    assert compute_cutoff([200]) == 200


def test_calculate_cutoff(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await _eliminator_field(h, [100, 150, 200, 250])

            result = await h.engine.calculate_cutoff(session_id, 1)
            assert result.success
            report = result.data
            assert report.cutoff == 175
            assert report.total_competitors == 4
            assert report.above_cutoff == 2
            assert report.below_cutoff == 2

    run(scenario())


def test_eliminate_is_idempotent(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await _eliminator_field(h, [100, 150, 200, 250])

            first = await h.engine.eliminate(session_id, 1, 175)
            assert (first.data.eliminated_count, first.data.remaining_count) == (2, 2)

            second = await h.engine.eliminate(session_id, 1, 175)
            assert (second.data.eliminated_count, second.data.remaining_count) == (0, 2)

            lower = await h.engine.eliminate(session_id, 1, 120)
            assert lower.data.eliminated_count == 0

            flags = await h.store.query(SIDE_GAME_ENTRIES, where=[eq('session_id', session_id)], order_by='score')
            assert [r['is_eliminated'] for r in flags] == [True, True, False, False]

    run(scenario())


def test_cutoff_tightens_over_active_entries(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await _eliminator_field(h, [100, 150, 200, 250])
            await h.engine.eliminate(session_id, 1, 175)

            result = await h.engine.calculate_cutoff(session_id, 1)
            assert result.data.cutoff == 225
            assert result.data.total_competitors == 2

    run(scenario())


def test_entries_at_the_cutoff_survive(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await _eliminator_field(h, [150, 200, 250])
            result = await h.engine.eliminate(session_id, 1, 200)
            assert result.data.eliminated_count == 1
            assert result.data.remaining_count == 2

    run(scenario())


def test_games_are_independent(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await _eliminator_field(h, [100, 300])
            result = await h.engine.calculate_cutoff(session_id, 2)
            assert not result.success
            assert result.error_code == 'no_entries'

            result = await h.engine.eliminate(session_id, 2, 200)
            assert (result.data.eliminated_count, result.data.remaining_count) == (0, 0)

    run(scenario())


def test_no_entries(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            result = await h.engine.calculate_cutoff(session_id, 1)
            assert result.error_code == 'no_entries'
            assert result.error == "No eliminator entries found for this game."

            result = await h.engine.eliminate(session_id, 1, -1)
            assert result.error_code == 'invalid_input'

    run(scenario())


def test_concurrent_eliminations_cut_each_entry_once(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await _eliminator_field(h, [120, 140, 160, 210, 230, 250])

            results = await asyncio.gather(
                h.engine.eliminate(session_id, 1, 185),
                h.engine.eliminate(session_id, 1, 185),
            )
            assert sorted(r.data.eliminated_count for r in results) == [0, 3]
            assert all(r.data.remaining_count == 3 for r in results)

    run(scenario())
