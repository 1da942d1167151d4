"""Tests for SQL statement building and error translation in the table gateway."""

import re
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from studyhub.data.errors import BackendError, ConstraintError, SchemaMismatchError, TransportError
from studyhub.data.gateway import Query, build_delete, build_select, build_update, build_where, translate_error
from studyhub.db.base import Base
from studyhub.db import models  # noqa: F401 - Import models to register them


def sql(statement) -> str:
    """Compiled Postgres SQL without the bind casts newer SQLAlchemy renders (`::VARCHAR`)."""
    return re.sub(r"::[A-Z][A-Z0-9_]*(\(\d+\))?(\[\])?", "", str(statement.compile(dialect=postgresql.dialect())))


@pytest.fixture
def subjects():
    return Base.metadata.tables["subjects"]


@pytest.fixture
def bookmarks():
    return Base.metadata.tables["bookmarks"]


class TestBuildSelect:
    def test_filters_and_or_groups(self, subjects):
        query = Query(
            table="subjects",
            filters={"academic_year": 1, "semester": 1},
            any_of=({"branch": "CSE"}, {"is_common": True}),
            order_by="name",
        )
        text = sql(build_select(subjects, query))
        assert "subjects.academic_year = %(academic_year_1)s" in text
        assert "subjects.semester = %(semester_1)s" in text
        assert "subjects.branch = %(branch_1)s OR subjects.is_common = true" in text
        assert "ORDER BY subjects.name ASC" in text

    def test_none_means_is_null_and_list_means_in(self, bookmarks):
        query = Query(table="bookmarks", filters={"note_id": None, "user_id": [uuid4(), uuid4()]})
        text = sql(build_select(bookmarks, query))
        assert "bookmarks.note_id IS NULL" in text
        assert "bookmarks.user_id IN" in text

    def test_columns_descending_and_limit(self, bookmarks):
        query = Query(
            table="bookmarks",
            filters={"user_id": uuid4()},
            columns=("id", "subject_id"),
            order_by="created_at",
            descending=True,
            limit=5,
        )
        text = sql(build_select(bookmarks, query))
        assert text.startswith("SELECT bookmarks.id, bookmarks.subject_id")
        assert "ORDER BY bookmarks.created_at DESC" in text
        assert "LIMIT" in text

    def test_unknown_column_is_schema_mismatch(self, bookmarks):
        with pytest.raises(SchemaMismatchError):
            build_select(bookmarks, Query(table="bookmarks", filters={"item_id": uuid4()}))

    def test_empty_filters_select_everything(self, subjects):
        assert "WHERE true" in sql(build_select(subjects, Query(table="subjects")))


class TestWrites:
    def test_update_returns_rows(self, subjects):
        text = sql(build_update(subjects, {"id": uuid4()}, {"name": "Physics"}))
        assert text.startswith("UPDATE subjects SET name=")
        assert "RETURNING" in text

    def test_delete_requires_filters(self, bookmarks):
        with pytest.raises(ValueError):
            build_delete(bookmarks, {})

    def test_delete_where(self, bookmarks):
        text = sql(build_delete(bookmarks, {"user_id": uuid4(), "subject_id": uuid4()}))
        assert "DELETE FROM bookmarks WHERE" in text
        assert "bookmarks.subject_id =" in text

    def test_where_without_clauses_is_true(self, subjects):
        assert str(build_where(subjects, {})) == "true"


class TestTranslateError:
    def test_integrity_error(self):
        error = IntegrityError("INSERT ...", {}, Exception("duplicate key"))
        assert isinstance(translate_error(error), ConstraintError)

    def test_missing_column(self):
        error = ProgrammingError("SELECT ...", {}, Exception('column "note_id" does not exist'))
        assert isinstance(translate_error(error), SchemaMismatchError)

    def test_connection_failure_is_transient(self):
        error = OperationalError("SELECT 1", {}, Exception("connection refused"))
        assert isinstance(translate_error(error), TransportError)

    def test_os_error_is_transient(self):
        assert isinstance(translate_error(ConnectionRefusedError("refused")), TransportError)

    def test_other_errors(self):
        result = translate_error(RuntimeError("boom"))
        assert type(result) is BackendError
