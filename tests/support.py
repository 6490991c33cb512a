"""
Shared helpers for the engine tests.

Each test drives its scenario with asyncio.run() against a fresh SQLite file
database, so no state leaks between tests.
"""

import asyncio
import random
from typing import List

from bowling_brackets.database.database import Database
from bowling_brackets.database.record_store import (
    BRACKET_ENTRIES, BRACKETS, COMPETITORS, SESSIONS, SIDE_GAME_ENTRIES,
    RecordStore, SQLAlchemyRecordStore, eq
)
from bowling_brackets.engine import BracketEngine
from bowling_brackets.utils.exceptions import TransientStoreError
from bowling_brackets.utils.handicap import compute_handicap


def run(coro):
    return asyncio.run(coro)


def split_total(total: int) -> List[int]:
    """Three game scores adding up to total."""
    base = total // 3
    return [base, base, total - 2 * base]


class EngineHarness:
    """Async context manager giving a test a database, a store and an engine."""

    def __init__(self, db_path, seed: int = 7):
        self.db_path = db_path
        self.seed = seed
        self.database = None
        self.store = None
        self.engine = None
        self._names = 0

    async def __aenter__(self):
        self.database = Database(f"sqlite:///{self.db_path}")
        await self.database.initialize()
        self.store = SQLAlchemyRecordStore(self.database)
        self.engine = BracketEngine(self.store, rng=random.Random(self.seed), base_delay=0)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.database.close()

    async def create_session(self, handicap_percentage: int = 80, bracket_price: float = 5.0) -> int:
        record = await self.store.create(SESSIONS, {
            'name': 'Tuesday Night League',
            'type': 'league',
            'handicap_percentage': handicap_percentage,
            'bracket_price': bracket_price,
            'status': 'active',
        })
        return record['id']

    async def add_competitor(self, session_id: int, average: int = 180, handicap: int = None,
                             scratch_brackets: int = 1, handicap_brackets: int = 1,
                             high_game_scratch: bool = False, high_game_handicap: bool = False,
                             eliminator: bool = False, lane: int = None) -> int:
        self._names += 1
        if handicap is None:
            handicap = compute_handicap(average, 80)
        record = await self.store.create(COMPETITORS, {
            'session_id': session_id,
            'name': f"Bowler {self._names}",
            'average': average,
            'handicap': handicap,
            'lane': lane,
            'scratch_brackets': scratch_brackets,
            'handicap_brackets': handicap_brackets,
            'high_game_scratch': high_game_scratch,
            'high_game_handicap': high_game_handicap,
            'eliminator': eliminator,
        })
        return record['id']

    async def add_competitors(self, session_id: int, count: int, **fields) -> List[int]:
        return [await self.add_competitor(session_id, average=150 + i, **fields) for i in range(count)]

    async def entries_for(self, bracket_id: int):
        return await self.store.query(BRACKET_ENTRIES, where=[eq('bracket_id', bracket_id)], order_by='position')

    async def brackets_for(self, session_id: int):
        return await self.store.query(BRACKETS, where=[eq('session_id', session_id)], order_by='bracket_number')

    async def eliminator_entry(self, session_id: int, competitor_id: int, score: int,
                               game_number: int = 1, is_eliminated: bool = False):
        return await self.store.create(SIDE_GAME_ENTRIES, {
            'session_id': session_id,
            'type': 'eliminator',
            'competitor_id': competitor_id,
            'game_number': game_number,
            'score': score,
            'handicap_score': score,
            'is_eliminated': is_eliminated,
        })


class FlakyStore(RecordStore):
    """Wraps a store and fails the first ``failures`` calls to one method."""

    def __init__(self, inner: RecordStore, method: str, failures: int, error=None):
        self.inner = inner
        self.method = method
        self.failures = failures
        self.error = error or TransientStoreError(method, "database is locked")
        self.calls = 0

    def _maybe_fail(self, name: str):
        if name == self.method:
            self.calls += 1
            if self.calls <= self.failures:
                raise self.error

    async def create(self, kind, fields):
        self._maybe_fail('create')
        return await self.inner.create(kind, fields)

    async def get_one(self, kind, record_id):
        self._maybe_fail('get_one')
        return await self.inner.get_one(kind, record_id)

    async def query(self, kind, where=(), order_by=None, expand=()):
        self._maybe_fail('query')
        return await self.inner.query(kind, where, order_by, expand)

    async def update(self, kind, record_id, fields):
        self._maybe_fail('update')
        return await self.inner.update(kind, record_id, fields)

    async def delete(self, kind, record_id):
        self._maybe_fail('delete')
        return await self.inner.delete(kind, record_id)


class FakeRedis:
    """In-memory stand-in for the two Redis commands the lock registry uses."""

    def __init__(self):
        self.values = {}
        self.closed = False

    async def set(self, name, value, ex=None, nx=False):
        if nx and name in self.values:
            return None
        self.values[name] = value
        return True

    async def eval(self, script, numkeys, name, token):
        if self.values.get(name) == token:
            del self.values[name]
            return 1
        return 0

    async def aclose(self):
        self.closed = True
