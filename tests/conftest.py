"""Pytest configuration and fixtures."""

import asyncio
import os
from collections.abc import AsyncGenerator, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

# Settings are read on first import of studyhub; required values must exist by then
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test-access-key")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test-secret")
os.environ.setdefault("ENVIRONMENT", "development")

import pymupdf
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import PrimaryKeyConstraint, UniqueConstraint

from studyhub.api.deps import create_access_token
from studyhub.data import EmergencyMonitor, RetryPolicy, StudyData
from studyhub.data.errors import BackendError, ConstraintError, SchemaMismatchError
from studyhub.data.gateway import COUNTER_RPCS, Query
from studyhub.db import models  # noqa: F401 - Import models to register them
from studyhub.db.base import Base
from studyhub.main import create_app
from studyhub.services.storage import StorageError, get_storage

_TABLE_DEFAULTS = {
    "students": {"is_admin": False},
    "subjects": {"is_common": False},
    "notes": {"approval_status": "pending", "views": 0, "downloads": 0},
}
_TIMESTAMP_COLUMNS = ("created_at", "updated_at", "viewed_at", "last_login_at")


def _unique_sets(table) -> list[tuple[str, ...]]:
    sets = [
        tuple(column.name for column in constraint.columns)
        for constraint in table.constraints
        if isinstance(constraint, (UniqueConstraint, PrimaryKeyConstraint))
    ]
    sets += [tuple(column.name for column in index.columns) for index in table.indexes if index.unique]
    sets += [(column.name,) for column in table.columns if column.unique]
    return sets


def _matches(row: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for name, value in filters.items():
        actual = row.get(name)
        if value is None:
            if actual is not None:
                return False
        elif isinstance(value, (list, tuple, set, frozenset)):
            if actual not in value:
                return False
        elif actual != value:
            return False
    return True


class FakeBackend:
    """
    In-memory DataBackend with the same filter semantics and error taxonomy
    as SqlTableGateway. Columns, unique constraints and foreign keys come
    from the declared models.
    """

    def __init__(self, *, missing_columns: Mapping[str, Sequence[str]] | None = None):
        missing = missing_columns or {}
        self.schema = Base.metadata.tables
        self.columns = {
            name: [c.name for c in table.columns if c.name not in missing.get(name, ())]
            for name, table in self.schema.items()
        }
        self.tables: dict[str, list[dict[str, Any]]] = {name: [] for name in self.schema}
        self.calls: list[tuple[str, str]] = []
        self.error: BackendError | None = None
        self.error_times: int | None = None
        self.hang = False
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    # -- failure injection --------------------------------------------------

    def fail(self, error: BackendError, times: int | None = None) -> None:
        """Raise `error` on the next `times` calls (every call if None)."""
        self.error = error
        self.error_times = times

    def recover(self) -> None:
        self.error = None
        self.error_times = None
        self.hang = False

    async def _enter(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            error = self.error
            if self.error_times is not None:
                self.error_times -= 1
                if self.error_times <= 0:
                    self.error = None
                    self.error_times = None
            raise error

    # -- schema checks ------------------------------------------------------

    def _check(self, table: str, names) -> None:
        if table not in self.tables:
            raise SchemaMismatchError(f"table {table} does not exist")
        for name in names:
            if name not in self.columns[table]:
                raise SchemaMismatchError(f"column {table}.{name} does not exist")

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _check_constraints(self, table: str, row: Mapping[str, Any], ignore: Any = None) -> None:
        for columns in _unique_sets(self.schema[table]):
            if any(name not in self.columns[table] for name in columns):
                continue
            values = tuple(row.get(name) for name in columns)
            if any(value is None for value in values):
                continue
            for other in self.tables[table]:
                if other is ignore:
                    continue
                if tuple(other.get(name) for name in columns) == values:
                    raise ConstraintError(f"duplicate key value violates unique constraint on {table}{columns}")

        for fk in self.schema[table].foreign_keys:
            name = fk.parent.name
            if name not in self.columns[table] or row.get(name) is None:
                continue
            target = fk.column.table.name
            if not any(r.get(fk.column.name) == row[name] for r in self.tables[target]):
                raise ConstraintError(f"insert on {table} violates foreign key {name} -> {target}")

    # -- seeding ------------------------------------------------------------

    def put(self, table: str, **values: Any) -> dict[str, Any]:
        """Insert synchronously (test setup)."""
        self._check(table, values)
        row = {name: None for name in self.columns[table]}
        row["id"] = uuid4()
        for name in _TIMESTAMP_COLUMNS:
            if name in row:
                row[name] = self._tick()
        row.update({k: v for k, v in _TABLE_DEFAULTS.get(table, {}).items() if k in row})
        row.update(values)
        self._check_constraints(table, row)
        self.tables[table].append(row)
        return dict(row)

    def add_student(self, **values: Any) -> dict[str, Any]:
        values.setdefault("full_name", "Test Student")
        return self.put("students", **values)

    def add_subject(self, name: str, branch: str = "CSE", academic_year: int = 1, semester: int = 1, **values):
        return self.put(
            "subjects", name=name, branch=branch, academic_year=academic_year, semester=semester, **values
        )

    def add_note(self, subject_id: UUID, title: str = "Unit 1 notes", **values: Any) -> dict[str, Any]:
        values.setdefault("file_url", f"https://cdn.test/notes/{uuid4().hex}.pdf")
        return self.put("notes", subject_id=subject_id, title=title, **values)

    # -- DataBackend --------------------------------------------------------

    async def select(self, query: Query) -> list[dict[str, Any]]:
        await self._enter("select", query.table)
        names = list(query.filters)
        for group in query.any_of:
            names += list(group)
        if query.columns:
            names += list(query.columns)
        if query.order_by:
            names.append(query.order_by)
        self._check(query.table, names)

        rows = [
            row for row in self.tables[query.table]
            if _matches(row, query.filters)
            and (not query.any_of or any(_matches(row, group) for group in query.any_of))
        ]
        if query.order_by:
            rows.sort(key=lambda row: row[query.order_by], reverse=query.descending)
        if query.limit is not None:
            rows = rows[: query.limit]
        if query.columns:
            return [{name: row[name] for name in query.columns} for row in rows]
        return [dict(row) for row in rows]

    async def insert(self, table: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        await self._enter("insert", table)
        return self.put(table, **payload)

    async def upsert(self, table: str, payload: Mapping[str, Any], *, conflict: Sequence[str] = ("id",)):
        await self._enter("upsert", table)
        self._check(table, payload)
        for row in self.tables[table]:
            if all(row.get(name) == payload.get(name) for name in conflict):
                row.update(payload)
                return dict(row)
        return self.put(table, **payload)

    async def update(self, table: str, filters: Mapping[str, Any], payload: Mapping[str, Any]):
        await self._enter("update", table)
        self._check(table, [*filters, *payload])
        updated = []
        for row in self.tables[table]:
            if _matches(row, filters):
                candidate = {**row, **payload}
                self._check_constraints(table, candidate, ignore=row)
                row.update(payload)
                updated.append(dict(row))
        return updated

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        await self._enter("delete", table)
        self._check(table, filters)
        if not filters:
            raise ValueError(f"refusing to delete from {table} without filters")
        kept = [row for row in self.tables[table] if not _matches(row, filters)]
        removed = len(self.tables[table]) - len(kept)
        self.tables[table] = kept
        return removed

    async def rpc(self, name: str, params: Mapping[str, Any]) -> None:
        await self._enter("rpc", name)
        counter = COUNTER_RPCS.get(name)
        if counter is None:
            raise SchemaMismatchError(f"function {name} does not exist")
        for row in self.tables["notes"]:
            if row["id"] == params["note_id"]:
                row[counter] = (row[counter] or 0) + 1

    async def ping(self) -> None:
        await self._enter("ping", "")


class FakeStorage:
    """NoteStorage double keeping objects in a dict."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def public_url(self, file_path: str) -> str:
        return f"https://cdn.test/{file_path}"

    async def generate_presigned_upload_url(
        self, file_path: str, content_type: str = "application/pdf", expiration: int = 300
    ) -> dict:
        return {"url": "https://bucket.test/", "fields": {"key": file_path, "Content-Type": content_type}}

    async def download(self, file_path: str) -> bytes:
        try:
            return self.objects[file_path]
        except KeyError:
            raise StorageError(f"Failed to download {file_path}") from None

    async def delete(self, file_path: str) -> None:
        self.objects.pop(file_path, None)
        self.deleted.append(file_path)

    def exists(self, file_path: str) -> bool:
        return file_path in self.objects


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def monitor() -> EmergencyMonitor:
    return EmergencyMonitor(threshold=3)


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Three short attempts with no backoff sleep."""
    return RetryPolicy(max_attempts=3, timeout=0.05, timeout_step=0.0, base_delay=0.0)


@pytest.fixture
def data(backend: FakeBackend, monitor: EmergencyMonitor, fast_policy: RetryPolicy) -> StudyData:
    return StudyData(
        backend,
        monitor,
        read_policy=fast_policy,
        write_timeout=0.05,
        connectivity_timeout=0.05,
    )


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def app(backend: FakeBackend, monitor: EmergencyMonitor, data: StudyData, storage: FakeStorage):
    app = create_app(backend=backend, monitor=monitor)
    app.state.study_data = data
    app.dependency_overrides[get_storage] = lambda: storage
    return app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def student(backend: FakeBackend) -> dict[str, Any]:
    """An onboarded year 1 / semester 1 CSE student."""
    return backend.add_student(
        full_name="Asha Rao", email="asha@example.com", academic_year=1, semester=1, branch="CSE"
    )


def auth_headers(student_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(student_id)}"}


@pytest.fixture
def headers(student: dict[str, Any]) -> dict[str, str]:
    return auth_headers(student["id"])


@pytest.fixture
def pdf_bytes() -> bytes:
    doc = pymupdf.open()
    doc.new_page()
    try:
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def legacy_backend(student: dict[str, Any]) -> FakeBackend:
    """A store whose bookmarks table only has subject_id, sharing the student's id."""
    backend = FakeBackend(missing_columns={"bookmarks": ["note_id"]})
    backend.add_student(id=student["id"], full_name=student["full_name"])
    return backend


@pytest.fixture
def token_for():
    """Build auth headers for any student id."""
    return auth_headers
