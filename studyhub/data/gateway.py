"""
Generic table gateway over the data service.

Every read and write in the application is expressed as one of a handful of
primitives keyed by table name, a filter predicate and a payload:

    select(Query(table="subjects", filters={"semester": 1}, any_of=[...]))
    insert("bookmarks", {"user_id": ..., "note_id": ...})
    upsert("students", {...})
    update("notes", {"id": ...}, {"approval_status": "approved"})
    delete("bookmarks", {"user_id": ..., "subject_id": ...})
    rpc("increment_note_views", {"note_id": ...})

Filter semantics (shared by every DataBackend implementation):
- scalar value  -> column = value
- None          -> column IS NULL
- list/tuple/set -> column IN (...)
- `filters` are ANDed; each mapping in `any_of` is an AND group, and the
  groups are ORed together before being ANDed with `filters`.

SqlTableGateway is the production implementation: SQLAlchemy Core
statements against the declared tables (or the reflected live schema), with
driver errors translated into the taxonomy in studyhub.data.errors.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from sqlalchemy import (
    ColumnElement,
    Delete,
    MetaData,
    Select,
    Table,
    Update,
    and_,
    delete,
    func,
    insert,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    NoSuchColumnError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from studyhub.data.errors import BackendError, ConstraintError, SchemaMismatchError, TransportError
from studyhub.db.base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# RPC name -> counter column on notes
COUNTER_RPCS = {
    "increment_note_views": "views",
    "increment_note_downloads": "downloads",
}


@dataclass(frozen=True)
class Query:
    """A read against one table."""

    table: str
    filters: Mapping[str, Any] = field(default_factory=dict)
    any_of: Sequence[Mapping[str, Any]] = ()
    columns: Sequence[str] | None = None
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None


class DataBackend(Protocol):
    """The primitives the data access layer is allowed to use."""

    async def select(self, query: Query) -> list[dict[str, Any]]: ...

    async def insert(self, table: str, payload: Mapping[str, Any]) -> dict[str, Any]: ...

    async def upsert(
        self,
        table: str,
        payload: Mapping[str, Any],
        *,
        conflict: Sequence[str] = ("id",),
    ) -> dict[str, Any]: ...

    async def update(
        self, table: str, filters: Mapping[str, Any], payload: Mapping[str, Any]
    ) -> list[dict[str, Any]]: ...

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int: ...

    async def rpc(self, name: str, params: Mapping[str, Any]) -> None: ...

    async def ping(self) -> None: ...


# =============================================================================
# STATEMENT BUILDING
# =============================================================================


def _column(table: Table, name: str) -> ColumnElement:
    try:
        return table.c[name]
    except KeyError:
        raise SchemaMismatchError(f"column {table.name}.{name} does not exist") from None


def _condition(table: Table, name: str, value: Any) -> ColumnElement[bool]:
    column = _column(table, name)
    if value is None:
        return column.is_(None)
    if isinstance(value, (list, tuple, set, frozenset)):
        return column.in_(list(value))
    return column == value


def build_where(
    table: Table,
    filters: Mapping[str, Any],
    any_of: Sequence[Mapping[str, Any]] = (),
) -> ColumnElement[bool]:
    """Translate the shared filter predicate into a WHERE clause."""
    clauses = [_condition(table, name, value) for name, value in filters.items()]
    if any_of:
        groups = [
            and_(*(_condition(table, name, value) for name, value in group.items()))
            for group in any_of
        ]
        clauses.append(or_(*groups))
    if not clauses:
        return true()
    return and_(*clauses)


def build_select(table: Table, query: Query) -> Select:
    """Build the SELECT for a Query against an already-resolved table."""
    if query.columns:
        stmt = select(*(_column(table, name) for name in query.columns))
    else:
        stmt = select(table)
    stmt = stmt.where(build_where(table, query.filters, query.any_of))
    if query.order_by:
        order_column = _column(table, query.order_by)
        stmt = stmt.order_by(order_column.desc() if query.descending else order_column.asc())
    if query.limit is not None:
        stmt = stmt.limit(query.limit)
    return stmt


def build_update(table: Table, filters: Mapping[str, Any], payload: Mapping[str, Any]) -> Update:
    values = {_column(table, name).key: value for name, value in payload.items()}
    return update(table).where(build_where(table, filters)).values(values).returning(table)


def build_delete(table: Table, filters: Mapping[str, Any]) -> Delete:
    if not filters:
        # An empty predicate would wipe the table
        raise ValueError(f"refusing to delete from {table.name} without filters")
    return delete(table).where(build_where(table, filters))


def translate_error(error: Exception) -> BackendError:
    """Map a driver/SQLAlchemy error onto the backend error taxonomy."""
    if isinstance(error, BackendError):
        return error
    if isinstance(error, IntegrityError):
        return ConstraintError(str(error.orig))
    if isinstance(error, NoSuchColumnError):
        return SchemaMismatchError(str(error))
    if isinstance(error, ProgrammingError):
        message = str(error.orig)
        if "does not exist" in message or "undefined" in message.lower():
            return SchemaMismatchError(message)
        return BackendError(message)
    if isinstance(error, (OperationalError, InterfaceError)):
        return TransportError(str(error.orig))
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return TransportError(str(error.orig))
    if isinstance(error, (OSError, ConnectionError)):
        return TransportError(str(error))
    return BackendError(str(error))


# =============================================================================
# SQL GATEWAY
# =============================================================================


class SqlTableGateway:
    """DataBackend over an async SQLAlchemy engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metadata: MetaData | None = None,
        *,
        reflect: bool = False,
    ):
        self._sessions = session_factory
        self._metadata = metadata if metadata is not None else Base.metadata
        self._reflect = reflect
        self._reflected: MetaData | None = None

    async def _run(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self._sessions() as session:
                result = await work(session)
                await session.commit()
                return result
        except (SQLAlchemyError, OSError) as e:
            raise translate_error(e) from e

    async def _table(self, name: str) -> Table:
        metadata = self._metadata
        if self._reflect:
            if self._reflected is None:
                self._reflected = await self._run(self._load_live_schema)
                logger.info("Reflected live schema: %s", sorted(self._reflected.tables))
            metadata = self._reflected
        try:
            return metadata.tables[name]
        except KeyError:
            raise SchemaMismatchError(f"table {name} does not exist") from None

    @staticmethod
    async def _load_live_schema(session: AsyncSession) -> MetaData:
        live = MetaData()
        connection = await session.connection()
        await connection.run_sync(lambda sync_conn: live.reflect(bind=sync_conn))
        return live

    async def select(self, query: Query) -> list[dict[str, Any]]:
        table = await self._table(query.table)
        stmt = build_select(table, query)

        async def work(session: AsyncSession) -> list[dict[str, Any]]:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings()]

        return await self._run(work)

    async def insert(self, table: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        target = await self._table(table)
        for name in payload:
            _column(target, name)
        stmt = insert(target).values(dict(payload)).returning(target)

        async def work(session: AsyncSession) -> dict[str, Any]:
            result = await session.execute(stmt)
            return dict(result.mappings().one())

        return await self._run(work)

    async def upsert(
        self,
        table: str,
        payload: Mapping[str, Any],
        *,
        conflict: Sequence[str] = ("id",),
    ) -> dict[str, Any]:
        target = await self._table(table)
        for name in payload:
            _column(target, name)
        stmt = pg_insert(target).values(dict(payload))
        stmt = stmt.on_conflict_do_update(
            index_elements=[_column(target, name) for name in conflict],
            set_={name: stmt.excluded[name] for name in payload if name not in conflict},
        ).returning(target)

        async def work(session: AsyncSession) -> dict[str, Any]:
            result = await session.execute(stmt)
            return dict(result.mappings().one())

        return await self._run(work)

    async def update(
        self, table: str, filters: Mapping[str, Any], payload: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        target = await self._table(table)
        stmt = build_update(target, filters, payload)

        async def work(session: AsyncSession) -> list[dict[str, Any]]:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings()]

        return await self._run(work)

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        target = await self._table(table)
        stmt = build_delete(target, filters)

        async def work(session: AsyncSession) -> int:
            result = await session.execute(stmt)
            return result.rowcount or 0

        return await self._run(work)

    async def rpc(self, name: str, params: Mapping[str, Any]) -> None:
        counter = COUNTER_RPCS.get(name)
        if counter is None:
            raise SchemaMismatchError(f"function {name} does not exist")
        notes = await self._table("notes")
        column = _column(notes, counter)
        stmt = (
            update(notes)
            .where(notes.c.id == params["note_id"])
            .values({column.key: func.coalesce(column, 0) + 1})
        )

        async def work(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._run(work)

    async def ping(self) -> None:
        async def work(session: AsyncSession) -> None:
            await session.execute(select(1))

        await self._run(work)
