"""
Parameterized statement composition for one table.

Identifiers placed in SQL text always come from the table's descriptor and
are quoted by the backend; every value travels as a bind parameter. The
only literal token accepted from a request is the ``NOW()`` timestamp
marker, which is replaced by the backend's current-timestamp expression.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .pager import Page, PageResult, coerce_page, paginate
from .row_security import EMPTY_SCOPE, ScopeClause
from .schema import TableDescriptor

NOW_MARKER = "NOW()"

ASCENDING = "asc"
DESCENDING = "desc"


def is_now_marker(value: Any) -> bool:
    return isinstance(value, str) and value.upper() == NOW_MARKER


def normalize_direction(value: Any, default: str = DESCENDING) -> str:
    """Reduce any request value to ``asc`` or ``desc``."""
    text = str(value or "").strip().lower()
    if text in (ASCENDING, DESCENDING):
        return text
    return default


def flip_direction(direction: str) -> str:
    return ASCENDING if normalize_direction(direction) == DESCENDING else DESCENDING


@dataclass(frozen=True)
class Statement:
    sql: str
    params: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class QueryPlan:
    """
    Everything needed to run the count and page queries of one render.

    ``where`` includes the WHERE keyword (or is empty) and is shared
    verbatim by the count and the page query, as are ``params``.
    """
    where: str
    params: Tuple[Any, ...]
    order_by: str
    direction: str
    limit: Optional[int] = None
    offset: int = 0

    def with_page(self, page: Page) -> "QueryPlan":
        return replace(self, limit=page.limit, offset=page.offset)


class QueryComposer:
    """
    Builds statements for a single table.

    Args:
        database: DatabaseInterface used for quoting and the timestamp expression
        descriptor: TableDescriptor the statements target
    """

    def __init__(self, database, descriptor: TableDescriptor):
        self.database = database
        self.descriptor = descriptor

    @property
    def table(self) -> str:
        return self.database.quote(self.descriptor.name)

    @property
    def primary_key(self) -> str:
        return self.database.quote(self.descriptor.primary_key)

    def column(self, name: Any) -> str:
        """Quote a column after checking it belongs to the table."""
        return self.database.quote(self.descriptor.require_column(name))

    def select_list(self) -> str:
        return ", ".join(self.database.quote(name) for name in self.descriptor.column_names)

    def _value_sql(self, value: Any) -> Tuple[str, List[Any]]:
        if is_now_marker(value):
            return self.database.NOW_EXPRESSION, []
        return "?", [value]

    @staticmethod
    def _scoped(conditions: List[str], params: List[Any], scope: ScopeClause) -> None:
        if scope and scope.where:
            conditions.append(f"({scope.where})")
            params.extend(scope.params)

    def compose_where(
        self,
        scope: ScopeClause = EMPTY_SCOPE,
        search: Optional[str] = None,
        searchable: Sequence[str] = (),
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Tuple[str, Tuple[Any, ...]]:
        """
        Merge scope, free-text search and exact-match filters into one WHERE clause.

        Search is applied only when both a term and searchable fields are
        present. Filter keys must be columns of the table.
        """
        conditions: List[str] = []
        params: List[Any] = []

        self._scoped(conditions, params, scope)

        term = (search or "").strip()
        if term and searchable:
            likes = []
            for name in searchable:
                likes.append(f"{self.column(name)} LIKE ?")
                params.append(f"%{term}%")
            conditions.append("(" + " OR ".join(likes) + ")")

        for name, value in (filters or {}).items():
            conditions.append(f"{self.column(name)} = ?")
            params.append(value)

        where = "WHERE " + " AND ".join(conditions) if conditions else ""
        return where, tuple(params)

    def resolve_sort(self, sort: Optional[str], sortable: Iterable[str]) -> str:
        """The requested sort column if it is allowed, otherwise the primary key."""
        allowed = set(sortable)
        if sort and sort in allowed and self.descriptor.has_column(sort):
            return sort
        return self.descriptor.primary_key

    def compose_select(
        self,
        scope: ScopeClause = EMPTY_SCOPE,
        search: Optional[str] = None,
        searchable: Sequence[str] = (),
        filters: Optional[Mapping[str, Any]] = None,
        sort: Optional[str] = None,
        sortable: Iterable[str] = (),
        direction: str = DESCENDING,
        page: Any = 1,
        page_size: int = 0,
    ) -> QueryPlan:
        """
        Resolve one render's query into a QueryPlan.

        The offset is provisional until the row count is known; see
        :meth:`fetch_page`, which clamps it through the pager.
        """
        where, params = self.compose_where(scope, search, searchable, filters)
        limit = page_size if page_size and page_size > 0 else None
        offset = (coerce_page(page) - 1) * limit if limit else 0
        return QueryPlan(
            where=where,
            params=params,
            order_by=self.resolve_sort(sort, sortable),
            direction=normalize_direction(direction),
            limit=limit,
            offset=offset,
        )

    def count_statement(self, plan: QueryPlan) -> Statement:
        sql = f"SELECT COUNT(*) FROM {self.table}"
        if plan.where:
            sql += f" {plan.where}"
        return Statement(sql, plan.params)

    def select_statement(self, plan: QueryPlan) -> Statement:
        sql = f"SELECT {self.select_list()} FROM {self.table}"
        if plan.where:
            sql += f" {plan.where}"
        order = self.database.quote(plan.order_by)
        sql += f" ORDER BY {order} {plan.direction.upper()}"
        if plan.order_by != self.descriptor.primary_key:
            sql += f", {self.primary_key} ASC"
        if plan.limit is not None:
            sql += f" LIMIT {int(plan.limit)} OFFSET {int(plan.offset)}"
        return Statement(sql, plan.params)

    def fetch_page(self, plan: QueryPlan, page: Any = 1, page_size: int = 0) -> Tuple[QueryPlan, PageResult]:
        """Count, paginate, then fetch the page, all under the same WHERE clause."""
        count = self.count_statement(plan)
        total = int(self.database.fetch_value(count.sql, count.params) or 0)
        paging = paginate(total, page_size, page)
        if page_size and page_size > 0:
            plan = plan.with_page(paging)
        else:
            plan = replace(plan, limit=None, offset=0)

        select = self.select_statement(plan)
        rows = self.database.fetch_all(select.sql, select.params)
        return plan, PageResult(
            rows=rows,
            total_count=total,
            current_page=paging.effective_page,
            page_size=paging.limit,
            total_pages=paging.total_pages,
        )

    def compose_insert(self, values: Mapping[str, Any]) -> Statement:
        if not values:
            raise ValueError("Nothing to insert")
        columns, placeholders, params = [], [], []
        for name, value in values.items():
            columns.append(self.column(name))
            sql, bound = self._value_sql(value)
            placeholders.append(sql)
            params.extend(bound)
        return Statement(
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({', '.join(placeholders)})",
            tuple(params),
        )

    def compose_update(self, column: str, value: Any, row_id: Any, scope: ScopeClause = EMPTY_SCOPE) -> Statement:
        target = self.column(column)
        value_sql, params = self._value_sql(value)
        conditions = [f"{self.primary_key} = ?"]
        params.append(row_id)
        self._scoped(conditions, params, scope)
        return Statement(
            f"UPDATE {self.table} SET {target} = {value_sql} WHERE {' AND '.join(conditions)}",
            tuple(params),
        )

    def compose_delete(self, row_id: Any, scope: ScopeClause = EMPTY_SCOPE) -> Statement:
        conditions = [f"{self.primary_key} = ?"]
        params: List[Any] = [row_id]
        self._scoped(conditions, params, scope)
        return Statement(f"DELETE FROM {self.table} WHERE {' AND '.join(conditions)}", tuple(params))

    def compose_exists(self, row_id: Any) -> Statement:
        return Statement(f"SELECT COUNT(*) FROM {self.table} WHERE {self.primary_key} = ?", (row_id,))

    def compose_fetch_row(self, row_id: Any, scope: ScopeClause = EMPTY_SCOPE) -> Statement:
        conditions = [f"{self.primary_key} = ?"]
        params: List[Any] = [row_id]
        self._scoped(conditions, params, scope)
        return Statement(
            f"SELECT {self.select_list()} FROM {self.table} WHERE {' AND '.join(conditions)}",
            tuple(params),
        )

    def compose_shell_insert(self, row_id: Any) -> Statement:
        return Statement(f"INSERT INTO {self.table} ({self.primary_key}) VALUES (?)", (row_id,))

    def compose_max_key(self) -> Statement:
        return Statement(f"SELECT MAX({self.primary_key}) FROM {self.table}")


def lookup_statement(
    database,
    descriptor: TableDescriptor,
    key_column: str,
    label_column: str,
    sort_column: Optional[str] = None,
    filters: Optional[Dict[str, Any]] = None,
    scope: ScopeClause = EMPTY_SCOPE,
    distinct: bool = False,
) -> Statement:
    """SELECT key, label pairs from a related table, for dropdowns and suggestion lists."""
    composer = QueryComposer(database, descriptor)
    key = composer.column(key_column)
    label = composer.column(label_column)
    where, params = composer.compose_where(scope, filters=filters)
    columns = f"{key}, {label}" if key != label else key
    sql = f"SELECT {'DISTINCT ' if distinct else ''}{columns} FROM {composer.table}"
    if where:
        sql += f" {where}"
    sql += f" ORDER BY {composer.column(sort_column) if sort_column else label}"
    return Statement(sql, params)
