"""
Tests for statement composition against the contacts table.
"""
import pytest

from gridcrud.errors import ValidationError
from gridcrud.query import (
    QueryComposer,
    flip_direction,
    is_now_marker,
    lookup_statement,
    normalize_direction,
)
from gridcrud.row_security import ScopeClause
from gridcrud.schema import introspect_table


@pytest.fixture
def composer(database):
    return QueryComposer(database, introspect_table(database, "contacts"))


class TestDirections:

    def test_normalize(self):
        assert normalize_direction("ASC") == "asc"
        assert normalize_direction("sideways") == "desc"
        assert normalize_direction(None, default="asc") == "asc"

    def test_flip(self):
        assert flip_direction("desc") == "asc"
        assert flip_direction("asc") == "desc"

    def test_now_marker(self):
        assert is_now_marker("NOW()")
        assert is_now_marker("now()")
        assert not is_now_marker("NOW")


class TestComposeWhere:

    def test_nothing_to_filter(self, composer):
        assert composer.compose_where() == ("", ())

    def test_search_needs_searchable_fields(self, composer):
        assert composer.compose_where(search="ali") == ("", ())

    def test_search_scope_and_filters_merge(self, composer):
        where, params = composer.compose_where(
            scope=ScopeClause("fldAge > ?", (18,)),
            search="ali",
            searchable=["fldName", "fldEmail"],
            filters={"fldStatus": "active"},
        )
        assert where == (
            'WHERE (fldAge > ?) AND ("fldName" LIKE ? OR "fldEmail" LIKE ?) AND "fldStatus" = ?'
        )
        assert params == (18, "%ali%", "%ali%", "active")

    def test_unknown_filter_column_is_rejected(self, composer):
        with pytest.raises(ValidationError):
            composer.compose_where(filters={"nope": 1})


class TestComposeSelect:

    def test_disallowed_sort_falls_back_to_primary_key(self, composer):
        plan = composer.compose_select(sort="fldName", sortable=["fldAge"])
        assert plan.order_by == "pkID"

    def test_secondary_order_on_primary_key(self, composer):
        plan = composer.compose_select(sort="fldName", sortable=["fldName"], direction="asc", page_size=10)
        statement = composer.select_statement(plan)
        assert statement.sql.endswith('ORDER BY "fldName" ASC, "pkID" ASC LIMIT 10 OFFSET 0')

    def test_count_and_page_share_where_clause(self, composer):
        plan = composer.compose_select(filters={"fldStatus": "active"})
        count = composer.count_statement(plan)
        select = composer.select_statement(plan)
        assert count.sql == 'SELECT COUNT(*) FROM "contacts" WHERE "fldStatus" = ?'
        assert plan.where in select.sql
        assert count.params == select.params == ("active",)

    def test_fetch_page_clamps_offset(self, composer):
        plan = composer.compose_select(page=9, page_size=1, direction="asc")
        plan, result = composer.fetch_page(plan, 9, 1)
        assert result.total_count == 2
        assert result.current_page == 2
        assert plan.offset == 1
        assert [row["fldName"] for row in result.rows] == ["Bob"]


class TestWrites:

    def test_update_substitutes_now_marker(self, composer):
        statement = composer.compose_update("fldBirthday", "NOW()", "1")
        assert statement.sql == 'UPDATE "contacts" SET "fldBirthday" = CURRENT_TIMESTAMP WHERE "pkID" = ?'
        assert statement.params == ("1",)

    def test_update_is_scoped(self, composer):
        statement = composer.compose_update("fldName", "x", "1", ScopeClause("fldStatus = ?", ("active",)))
        assert statement.sql.endswith('WHERE "pkID" = ? AND (fldStatus = ?)')
        assert statement.params == ("x", "1", "active")

    def test_values_never_reach_sql_text(self, composer):
        statement = composer.compose_insert({"fldName": "Robert'); DROP TABLE contacts;--"})
        assert "DROP" not in statement.sql
        assert statement.params == ("Robert'); DROP TABLE contacts;--",)

    def test_unknown_column_rejected(self, composer):
        with pytest.raises(ValidationError):
            composer.compose_update("fldName = 1; --", "x", "1")

    def test_delete_and_exists(self, composer):
        assert composer.compose_delete("3").sql == 'DELETE FROM "contacts" WHERE "pkID" = ?'
        assert composer.compose_exists("3").params == ("3",)


def test_lookup_statement(database):
    descriptor = introspect_table(database, "categories")
    statement = lookup_statement(database, descriptor, "catID", "catName", filters={"catVisible": 1})
    assert statement.sql == (
        'SELECT "catID", "catName" FROM "categories" WHERE "catVisible" = ? ORDER BY "catName"'
    )
    rows = database.fetch_all(statement.sql, statement.params)
    assert [row["catName"] for row in rows] == ["Books", "Games"]
