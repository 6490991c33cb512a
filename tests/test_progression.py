"""Tests for ranking brackets and naming winners"""

import asyncio

from bowling_brackets.data_models.records import BracketEntry
from bowling_brackets.database.models import BracketType
from bowling_brackets.database.record_store import BRACKETS
from bowling_brackets.operations.progression import is_ready, rank_entries

from tests.support import EngineHarness, run, split_total


def _entry(entry_id, position, total, handicap=0):
    return BracketEntry.from_record({
        'id': entry_id,
        'bracket_id': 1,
        'competitor_id': entry_id,
        'position': position,
        'games': split_total(total),
        'total_score': total,
        'expand': {'competitor': {
            'id': entry_id, 'session_id': 1, 'name': f"Bowler {entry_id}",
            'average': 180, 'handicap': handicap,
        }},
    })


def test_rank_entries_breaks_ties_by_position():
    entries = [_entry(1, 4, 280), _entry(2, 2, 280), _entry(3, 1, 250)]
    ranked = rank_entries(entries, BracketType.SCRATCH)
    assert [e.position for e in ranked] == [2, 4, 1]


def test_rank_entries_adds_handicap_for_handicap_brackets():
    entries = [_entry(1, 1, 210, handicap=0), _entry(2, 2, 200, handicap=20)]
    assert [e.id for e in rank_entries(entries, BracketType.SCRATCH)] == [1, 2]
    assert [e.id for e in rank_entries(entries, BracketType.HANDICAP)] == [2, 1]


def test_is_ready():
    assert not is_ready([])
    assert not is_ready([_entry(1, 1, 200), _entry(2, 2, 0)])
    assert is_ready([_entry(1, 1, 200), _entry(2, 2, 150)])


def test_progress_scratch_bracket(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            await h.add_competitors(session_id, 8)
            bracket = (await h.engine.generate(session_id, 'scratch')).data.brackets[0]
            entries = await h.entries_for(bracket.id)

            totals = [300, 280, 280, 250, 240, 230, 200, 150]
            for entry, total in zip(entries, totals):
                assert (await h.engine.record_bracket_scores(entry['id'], split_total(total))).success

            result = await h.engine.progress(session_id, 'scratch')
            assert result.success
            assert result.data.progressed_brackets == 1
            assert result.data.total_brackets == 1

            stored = await h.store.get_one(BRACKETS, bracket.id)
            assert stored['status'] == 'completed'
            assert stored['winner_id'] == entries[0]['competitor_id']
            # 280 tie: position 2 outranks position 3
            assert stored['runner_up_id'] == entries[1]['competitor_id']

            ranked = await h.entries_for(bracket.id)
            assert [e['final_position'] for e in ranked] == list(range(1, 9))

            brackets = await h.engine.get_brackets(session_id, 'scratch')
            assert brackets.data[0].winner.id == entries[0]['competitor_id']

    run(scenario())


def test_progress_handicap_bracket(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            with_handicap = await h.add_competitor(session_id, average=175, handicap=20)
            scratch_heavy = await h.add_competitor(session_id, average=200, handicap=0)
            for _ in range(6):
                await h.add_competitor(session_id, average=200, handicap=0)
            bracket = (await h.engine.generate(session_id, 'handicap')).data.brackets[0]

            for entry in await h.entries_for(bracket.id):
                if entry['competitor_id'] == with_handicap:
                    total = 200
                elif entry['competitor_id'] == scratch_heavy:
                    total = 210
                else:
                    total = 150
                await h.engine.record_bracket_scores(entry['id'], split_total(total))

            result = await h.engine.progress(session_id, 'handicap')
            assert result.data.progressed_brackets == 1

            stored = await h.store.get_one(BRACKETS, bracket.id)
            assert stored['winner_id'] == with_handicap
            assert stored['runner_up_id'] == scratch_heavy

    run(scenario())


def test_unscored_bracket_is_skipped(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            await h.add_competitors(session_id, 8)
            bracket = (await h.engine.generate(session_id, 'scratch')).data.brackets[0]
            entries = await h.entries_for(bracket.id)
            for entry in entries[:7]:
                await h.engine.record_bracket_scores(entry['id'], [180, 190, 200])

            result = await h.engine.progress(session_id, 'scratch')
            assert result.success
            assert result.data.progressed_brackets == 0
            assert result.data.total_brackets == 1
            assert result.data.skipped_bracket_numbers == [1]

            stored = await h.store.get_one(BRACKETS, bracket.id)
            assert stored['status'] == 'full'
            assert stored['winner_id'] is None
            assert all(e['final_position'] is None for e in await h.entries_for(bracket.id))

    run(scenario())


def test_progress_is_idempotent(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            await h.add_competitors(session_id, 8)
            bracket = (await h.engine.generate(session_id, 'scratch')).data.brackets[0]
            for index, entry in enumerate(await h.entries_for(bracket.id)):
                await h.engine.record_bracket_scores(entry['id'], split_total(200 + index))

            first = await h.engine.progress(session_id, 'scratch')
            second = await h.engine.progress(session_id, 'scratch')
            assert first.data.progressed_brackets == 1
            assert second.data.progressed_brackets == 0
            assert second.data.total_brackets == 0

    run(scenario())


def test_progress_without_brackets_fails(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            result = await h.engine.progress(session_id, 'handicap')
            assert not result.success
            assert result.error_code == 'no_brackets'
            assert result.error == "No brackets found to progress."

    run(scenario())


def test_concurrent_progress_completes_each_bracket_once(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            await h.add_competitors(session_id, 16)
            generated = await h.engine.generate(session_id, 'scratch')
            for bracket in generated.data.brackets:
                for index, entry in enumerate(await h.entries_for(bracket.id)):
                    await h.engine.record_bracket_scores(entry['id'], split_total(180 + 5 * index))

            results = await asyncio.gather(
                h.engine.progress(session_id, 'scratch'),
                h.engine.progress(session_id, 'scratch'),
            )
            assert all(r.success for r in results)
            assert sorted(r.data.progressed_brackets for r in results) == [0, 2]
            assert sorted(r.data.total_brackets for r in results) == [0, 2]

            for bracket in generated.data.brackets:
                stored = await h.store.get_one(BRACKETS, bracket.id)
                assert stored['status'] == 'completed'
                places = [e['final_position'] for e in await h.entries_for(bracket.id)]
                assert sorted(places) == list(range(1, 9))

    run(scenario())
