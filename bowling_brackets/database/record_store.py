"""
Record Store contract and its SQLAlchemy implementation.

The operations layer never talks to SQLAlchemy directly. It depends on the
small ``RecordStore`` contract below (create / get_one / query / update /
delete over named collections of plain-dict records), so that any persistence
layer satisfying it can back the engine and tests can swap in a fake.

Collections (kinds): sessions, competitors, brackets, bracket_entries,
side_game_entries.
"""

import operator
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import inspect, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from bowling_brackets.database.models import (
    BowlingSession, Competitor, Bracket, BracketEntry, SideGameEntry
)
from bowling_brackets.utils.exceptions import (
    RecordNotFoundError, StoreError, StoreValidationError, TransientStoreError
)
from bowling_brackets.utils.logger import setup_logger

logger = setup_logger(__name__)

SESSIONS = 'sessions'
COMPETITORS = 'competitors'
BRACKETS = 'brackets'
BRACKET_ENTRIES = 'bracket_entries'
SIDE_GAME_ENTRIES = 'side_game_entries'

# Reference fields that query(expand=...) can follow: kind -> name -> (field, target kind)
REFERENCES: Dict[str, Dict[str, tuple]] = {
    SESSIONS: {},
    COMPETITORS: {
        'session': ('session_id', SESSIONS),
    },
    BRACKETS: {
        'session': ('session_id', SESSIONS),
        'winner': ('winner_id', COMPETITORS),
        'runner_up': ('runner_up_id', COMPETITORS),
    },
    BRACKET_ENTRIES: {
        'bracket': ('bracket_id', BRACKETS),
        'competitor': ('competitor_id', COMPETITORS),
    },
    SIDE_GAME_ENTRIES: {
        'session': ('session_id', SESSIONS),
        'competitor': ('competitor_id', COMPETITORS),
    },
}

_COMPARATORS = {
    '=': operator.eq,
    '!=': operator.ne,
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
}


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@dataclass(frozen=True)
class Filter:
    """Single predicate over one field. A sequence of filters means AND."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _COMPARATORS and self.op != '~':
            raise ValueError(f"Unsupported filter operator: {self.op}")


def eq(field: str, value: Any) -> Filter:
    return Filter(field, '=', value)


def contains(field: str, text: str) -> Filter:
    return Filter(field, '~', text)


def parse_order(order_by: Optional[str]):
    """Split '-field' / 'field' into (field, descending)."""
    if not order_by:
        return None, False
    if order_by.startswith('-'):
        return order_by[1:], True
    return order_by, False


class RecordStore(ABC):
    """Abstract persistence collaborator used by every engine component."""

    @abstractmethod
    async def create(self, kind: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it with its generated id."""

    @abstractmethod
    async def get_one(self, kind: str, record_id: int) -> Dict[str, Any]:
        """Return one record or raise RecordNotFoundError."""

    @abstractmethod
    async def query(
        self,
        kind: str,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        expand: Sequence[str] = ()
    ) -> List[Dict[str, Any]]:
        """Return all records matching every filter, optionally sorted and expanded."""

    @abstractmethod
    async def update(self, kind: str, record_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Update fields of one record and return the stored record."""

    @abstractmethod
    async def delete(self, kind: str, record_id: int) -> None:
        """Delete one record."""

    @asynccontextmanager
    async def transaction(self):
        """
        Transaction scope yielding a store to use inside it.

        Stores without transactions yield themselves, in which case every
        write inside the scope is committed as soon as it is made.
        """
        yield self


class SQLAlchemyRecordStore(RecordStore):
    """
    Record store backed by the async SQLAlchemy engine of a Database.

    Outside a transaction every call runs in its own committed session.
    Inside ``transaction()`` all calls share one session that is committed
    together on exit and rolled back together on error.
    """

    MODELS = {
        SESSIONS: BowlingSession,
        COMPETITORS: Competitor,
        BRACKETS: Bracket,
        BRACKET_ENTRIES: BracketEntry,
        SIDE_GAME_ENTRIES: SideGameEntry,
    }

    def __init__(self, database, session=None):
        """Initialize with database instance and an optional bound session"""
        self.db = database
        self._session = session
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self):
        """
        Provides a session context. Uses the bound session if available,
        otherwise creates and commits a new session.
        """
        if self._session is not None:
            # Bound to an outer transaction, we do not manage its lifecycle
            yield self._session
        else:
            async with self.db.transaction() as new_session:
                yield new_session

    @asynccontextmanager
    async def _translate_errors(self, operation: str):
        """Map SQLAlchemy failures onto the store error taxonomy."""
        try:
            yield
        except IntegrityError as e:
            raise StoreValidationError(operation, str(e.orig)) from e
        except OperationalError as e:
            raise TransientStoreError(operation, str(e.orig)) from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise TransientStoreError(operation, str(e.orig)) from e
            raise StoreError(operation, str(e.orig)) from e

    @asynccontextmanager
    async def transaction(self):
        if self._session is not None:
            # Nested scopes join the outer transaction
            yield self
            return
        async with self._translate_errors('transaction'):
            async with self.db.transaction() as session:
                yield SQLAlchemyRecordStore(self.db, session=session)

    def _model(self, kind: str):
        try:
            return self.MODELS[kind]
        except KeyError:
            raise StoreValidationError(f"access to '{kind}'", "unknown collection")

    def _column_values(self, kind: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(kind)
        columns = {attr.key for attr in inspect(model).column_attrs}
        unknown = set(fields) - columns
        if unknown:
            raise StoreValidationError(f"write to '{kind}'", f"unknown fields {sorted(unknown)}")
        if 'id' in fields:
            raise StoreValidationError(f"write to '{kind}'", "id is generated by the store")
        return {key: _plain(value) for key, value in fields.items()}

    @staticmethod
    def _to_record(obj) -> Dict[str, Any]:
        record = {}
        for attr in inspect(type(obj)).column_attrs:
            value = getattr(obj, attr.key)
            record[attr.key] = list(value) if isinstance(value, list) else value
        return record

    def _clause(self, model, condition: Filter):
        column = getattr(model, condition.field, None)
        if column is None or condition.field not in {a.key for a in inspect(model).column_attrs}:
            raise StoreValidationError(f"query on '{model.__tablename__}'", f"unknown field '{condition.field}'")
        value = _plain(condition.value)
        if condition.op == '~':
            return column.contains(str(value), autoescape=True)
        return _COMPARATORS[condition.op](column, value)

    async def _expand(self, session, kind: str, record: Dict[str, Any], expand: Sequence[str]) -> Dict[str, Any]:
        expanded = {}
        references = REFERENCES.get(kind, {})
        for name in expand:
            if name not in references:
                raise StoreValidationError(f"expand on '{kind}'", f"'{name}' is not a reference")
            field, target_kind = references[name]
            ref_id = record.get(field)
            target = await session.get(self.MODELS[target_kind], ref_id) if ref_id is not None else None
            expanded[name] = self._to_record(target) if target is not None else None
        return expanded

    async def create(self, kind: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(kind)
        values = self._column_values(kind, fields)
        async with self._translate_errors(f"create in '{kind}'"):
            async with self._get_session_context() as session:
                obj = model(**values)
                session.add(obj)
                await session.flush()
                await session.refresh(obj)
                record = self._to_record(obj)
        self.logger.debug(f"Created {kind} record {record['id']}")
        return record

    async def get_one(self, kind: str, record_id: int) -> Dict[str, Any]:
        model = self._model(kind)
        async with self._translate_errors(f"get from '{kind}'"):
            async with self._get_session_context() as session:
                obj = await session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(kind, record_id)
                return self._to_record(obj)

    async def query(
        self,
        kind: str,
        where: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        expand: Sequence[str] = ()
    ) -> List[Dict[str, Any]]:
        model = self._model(kind)
        stmt = select(model)
        for condition in where:
            stmt = stmt.where(self._clause(model, condition))

        field, descending = parse_order(order_by)
        if field:
            column = getattr(model, field, None)
            if column is None:
                raise StoreValidationError(f"query on '{kind}'", f"unknown sort field '{field}'")
            stmt = stmt.order_by(column.desc() if descending else column.asc(), model.id.asc())
        else:
            stmt = stmt.order_by(model.id.asc())

        async with self._translate_errors(f"query on '{kind}'"):
            async with self._get_session_context() as session:
                result = await session.execute(stmt)
                records = [self._to_record(obj) for obj in result.scalars().all()]
                if expand:
                    for record in records:
                        record['expand'] = await self._expand(session, kind, record, expand)
        return records

    async def update(self, kind: str, record_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(kind)
        values = self._column_values(kind, fields)
        async with self._translate_errors(f"update in '{kind}'"):
            async with self._get_session_context() as session:
                obj = await session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(kind, record_id)
                for key, value in values.items():
                    setattr(obj, key, value)
                await session.flush()
                await session.refresh(obj)
                return self._to_record(obj)

    async def delete(self, kind: str, record_id: int) -> None:
        model = self._model(kind)
        async with self._translate_errors(f"delete from '{kind}'"):
            async with self._get_session_context() as session:
                obj = await session.get(model, record_id)
                if obj is None:
                    raise RecordNotFoundError(kind, record_id)
                await session.delete(obj)
        self.logger.debug(f"Deleted {kind} record {record_id}")
