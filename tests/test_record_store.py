"""Tests for the SQLAlchemy-backed record store"""

import pytest

from bowling_brackets.database.record_store import (
    BRACKETS, COMPETITORS, Filter, contains, eq, parse_order
)
from bowling_brackets.utils.exceptions import RecordNotFoundError, StoreValidationError

from tests.support import EngineHarness, run


def test_filter_rejects_unknown_operator():
    assert Filter('average', '>=', 190).op == '>='
    assert contains('name', 'Jones').op == '~'
    with pytest.raises(ValueError):
        Filter('average', 'between', (1, 2))


def test_parse_order():
    assert parse_order('-score') == ('score', True)
    assert parse_order('position') == ('position', False)
    assert parse_order(None) == (None, False)


def test_create_get_update_delete(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            competitor_id = await h.add_competitor(session_id, average=190, lane=4)

            record = await h.store.get_one(COMPETITORS, competitor_id)
            assert record['average'] == 190
            assert record['lane'] == 4

            updated = await h.store.update(COMPETITORS, competitor_id, {'lane': 6})
            assert updated['lane'] == 6

            await h.store.delete(COMPETITORS, competitor_id)
            with pytest.raises(RecordNotFoundError):
                await h.store.get_one(COMPETITORS, competitor_id)
            with pytest.raises(RecordNotFoundError):
                await h.store.update(COMPETITORS, competitor_id, {'lane': 1})

    run(scenario())


def test_query_filters_and_order(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            other_session = await h.create_session()
            for average in (150, 210, 180):
                await h.add_competitor(session_id, average=average)
            await h.add_competitor(other_session, average=220)

            records = await h.store.query(
                COMPETITORS,
                where=[eq('session_id', session_id), Filter('average', '>', 160)],
                order_by='-average'
            )
            assert [r['average'] for r in records] == [210, 180]

            named = await h.store.query(COMPETITORS, where=[contains('name', 'Bowler')])
            assert len(named) == 4

    run(scenario())


def test_query_expands_references(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            competitor_id = await h.add_competitor(session_id)
            await h.store.create(BRACKETS, {
                'session_id': session_id,
                'type': 'scratch',
                'bracket_number': 1,
                'status': 'completed',
                'capacity': 8,
                'current_size': 0,
                'winner_id': competitor_id,
            })

            records = await h.store.query(BRACKETS, expand=('winner', 'runner_up'))
            assert records[0]['expand']['winner']['id'] == competitor_id
            assert records[0]['expand']['runner_up'] is None

            with pytest.raises(StoreValidationError):
                await h.store.query(BRACKETS, expand=('lane',))

    run(scenario())


def test_rejected_writes(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            with pytest.raises(StoreValidationError):
                await h.store.create(COMPETITORS, {'session_id': session_id, 'nickname': 'Ace'})
            with pytest.raises(StoreValidationError):
                await h.store.update(COMPETITORS, 1, {'id': 7})
            # CHECK constraint on the average column
            with pytest.raises(StoreValidationError):
                await h.store.create(COMPETITORS, {'session_id': session_id, 'name': 'Max', 'average': 400})
            with pytest.raises(StoreValidationError):
                await h.store.query('lanes')

    run(scenario())


def test_transaction_rolls_back_on_error(db_path):
    async def scenario():
        async with EngineHarness(db_path) as h:
            session_id = await h.create_session()
            with pytest.raises(RuntimeError):
                async with h.store.transaction() as store:
                    await store.create(COMPETITORS, {'session_id': session_id, 'name': 'Temp', 'average': 150})
                    assert len(await store.query(COMPETITORS)) == 1
                    raise RuntimeError("abort")

            assert await h.store.query(COMPETITORS) == []

            async with h.store.transaction() as store:
                await store.create(COMPETITORS, {'session_id': session_id, 'name': 'Kept', 'average': 150})
                async with store.transaction() as nested:
                    assert nested is store
            assert len(await h.store.query(COMPETITORS)) == 1

    run(scenario())
